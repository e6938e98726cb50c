from netscope.models.device import Device, SnmpCredential
from netscope.models.interface import Interface
from netscope.models.metric import Metric, MetricHourly, MetricDaily
from netscope.models.alarm import AlarmRule, Alarm

__all__ = [
    "Device", "SnmpCredential",
    "Interface",
    "Metric", "MetricHourly", "MetricDaily",
    "AlarmRule", "Alarm",
]
