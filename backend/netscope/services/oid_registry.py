"""
Vendor/OID Registry
Static OID tables for standard MIBs and twelve vendor families, plus
sysDescr-based vendor detection. Pure data, safe to share across tasks.
"""
import enum
import re
from typing import Dict, List, NamedTuple, Optional


class Vendor(str, enum.Enum):
    CISCO = "cisco"
    JUNIPER = "juniper"
    HP = "hp"
    ARUBA = "aruba"
    FORTINET = "fortinet"
    PALOALTO = "paloalto"
    MIKROTIK = "mikrotik"
    UBIQUITI = "ubiquiti"
    LINUX = "linux"
    WINDOWS = "windows"
    SYNOLOGY = "synology"
    QNAP = "qnap"
    DELL = "dell"
    GENERIC = "generic"


class VendorInfo(NamedTuple):
    vendor: str
    device_type: str


GENERIC_VENDOR = VendorInfo(Vendor.GENERIC.value, "other")

# Standard MIBs (RFC 1213, IF-MIB, HOST-RESOURCES-MIB, TCP-MIB, IP-MIB)
STANDARD_OIDS: Dict[str, Dict[str, str]] = {
    "system": {
        "sysDescr": "1.3.6.1.2.1.1.1.0",
        "sysObjectID": "1.3.6.1.2.1.1.2.0",
        "sysUpTime": "1.3.6.1.2.1.1.3.0",
        "sysContact": "1.3.6.1.2.1.1.4.0",
        "sysName": "1.3.6.1.2.1.1.5.0",
        "sysLocation": "1.3.6.1.2.1.1.6.0",
        "sysServices": "1.3.6.1.2.1.1.7.0",
    },
    "interfaces": {
        "ifNumber": "1.3.6.1.2.1.2.1.0",
        "ifTable": "1.3.6.1.2.1.2.2.1",
        "ifIndex": "1.3.6.1.2.1.2.2.1.1",
        "ifDescr": "1.3.6.1.2.1.2.2.1.2",
        "ifType": "1.3.6.1.2.1.2.2.1.3",
        "ifMtu": "1.3.6.1.2.1.2.2.1.4",
        "ifSpeed": "1.3.6.1.2.1.2.2.1.5",
        "ifPhysAddress": "1.3.6.1.2.1.2.2.1.6",
        "ifAdminStatus": "1.3.6.1.2.1.2.2.1.7",
        "ifOperStatus": "1.3.6.1.2.1.2.2.1.8",
        "ifInOctets": "1.3.6.1.2.1.2.2.1.10",
        "ifInUcastPkts": "1.3.6.1.2.1.2.2.1.11",
        "ifInDiscards": "1.3.6.1.2.1.2.2.1.13",
        "ifInErrors": "1.3.6.1.2.1.2.2.1.14",
        "ifOutOctets": "1.3.6.1.2.1.2.2.1.16",
        "ifOutUcastPkts": "1.3.6.1.2.1.2.2.1.17",
        "ifOutDiscards": "1.3.6.1.2.1.2.2.1.19",
        "ifOutErrors": "1.3.6.1.2.1.2.2.1.20",
    },
    "ifXTable": {
        "ifName": "1.3.6.1.2.1.31.1.1.1.1",
        "ifHCInOctets": "1.3.6.1.2.1.31.1.1.1.6",
        "ifHCInUcastPkts": "1.3.6.1.2.1.31.1.1.1.7",
        "ifHCOutOctets": "1.3.6.1.2.1.31.1.1.1.10",
        "ifHCOutUcastPkts": "1.3.6.1.2.1.31.1.1.1.11",
        "ifHighSpeed": "1.3.6.1.2.1.31.1.1.1.15",
        "ifAlias": "1.3.6.1.2.1.31.1.1.1.18",
    },
    "hrSystem": {
        "hrSystemUptime": "1.3.6.1.2.1.25.1.1.0",
        "hrSystemDate": "1.3.6.1.2.1.25.1.2.0",
        "hrSystemNumUsers": "1.3.6.1.2.1.25.1.5.0",
        "hrSystemProcesses": "1.3.6.1.2.1.25.1.6.0",
        "hrSystemMaxProcesses": "1.3.6.1.2.1.25.1.7.0",
    },
    "hrStorage": {
        "hrStorageTable": "1.3.6.1.2.1.25.2.3.1",
        "hrStorageIndex": "1.3.6.1.2.1.25.2.3.1.1",
        "hrStorageType": "1.3.6.1.2.1.25.2.3.1.2",
        "hrStorageDescr": "1.3.6.1.2.1.25.2.3.1.3",
        "hrStorageAllocationUnits": "1.3.6.1.2.1.25.2.3.1.4",
        "hrStorageSize": "1.3.6.1.2.1.25.2.3.1.5",
        "hrStorageUsed": "1.3.6.1.2.1.25.2.3.1.6",
    },
    "hrProcessor": {
        "hrProcessorTable": "1.3.6.1.2.1.25.3.3.1",
        "hrProcessorLoad": "1.3.6.1.2.1.25.3.3.1.2",
    },
    "tcp": {
        "tcpActiveOpens": "1.3.6.1.2.1.6.5.0",
        "tcpPassiveOpens": "1.3.6.1.2.1.6.6.0",
        "tcpCurrEstab": "1.3.6.1.2.1.6.9.0",
        "tcpInSegs": "1.3.6.1.2.1.6.10.0",
        "tcpOutSegs": "1.3.6.1.2.1.6.11.0",
    },
    "ip": {
        "ipForwarding": "1.3.6.1.2.1.4.1.0",
        "ipInReceives": "1.3.6.1.2.1.4.3.0",
        "ipInDelivers": "1.3.6.1.2.1.4.9.0",
        "ipOutRequests": "1.3.6.1.2.1.4.10.0",
    },
}

_HR_PROCESSOR_LOAD = STANDARD_OIDS["hrProcessor"]["hrProcessorLoad"]
_HR_STORAGE = STANDARD_OIDS["hrStorage"]

VENDOR_OIDS: Dict[str, Dict[str, Dict[str, str]]] = {
    "cisco": {
        "cpu": {
            "cpmCPUTotal5sec": "1.3.6.1.4.1.9.9.109.1.1.1.1.3",
            "cpmCPUTotal1min": "1.3.6.1.4.1.9.9.109.1.1.1.1.4",
            "cpmCPUTotal5min": "1.3.6.1.4.1.9.9.109.1.1.1.1.5",
            "cpmCPUTotal5secRev": "1.3.6.1.4.1.9.9.109.1.1.1.1.6",
            "cpmCPUTotal1minRev": "1.3.6.1.4.1.9.9.109.1.1.1.1.7",
            "cpmCPUTotal5minRev": "1.3.6.1.4.1.9.9.109.1.1.1.1.8",
            "avgBusy5": "1.3.6.1.4.1.9.2.1.58.0",
        },
        "memory": {
            "ciscoMemoryPoolName": "1.3.6.1.4.1.9.9.48.1.1.1.2",
            "ciscoMemoryPoolUsed": "1.3.6.1.4.1.9.9.48.1.1.1.5",
            "ciscoMemoryPoolFree": "1.3.6.1.4.1.9.9.48.1.1.1.6",
            "ciscoMemoryPoolLargestFree": "1.3.6.1.4.1.9.9.48.1.1.1.7",
            "cempMemPoolUsed": "1.3.6.1.4.1.9.9.221.1.1.1.1.18",
            "cempMemPoolFree": "1.3.6.1.4.1.9.9.221.1.1.1.1.20",
        },
        "environment": {
            "ciscoEnvMonTemperatureStatusDescr": "1.3.6.1.4.1.9.9.13.1.3.1.2",
            "ciscoEnvMonTemperatureStatusValue": "1.3.6.1.4.1.9.9.13.1.3.1.3",
            "ciscoEnvMonTemperatureThreshold": "1.3.6.1.4.1.9.9.13.1.3.1.4",
            "ciscoEnvMonTemperatureState": "1.3.6.1.4.1.9.9.13.1.3.1.6",
            "ciscoEnvMonFanStatusDescr": "1.3.6.1.4.1.9.9.13.1.4.1.2",
            "ciscoEnvMonFanState": "1.3.6.1.4.1.9.9.13.1.4.1.3",
            "ciscoEnvMonSupplyStatusDescr": "1.3.6.1.4.1.9.9.13.1.5.1.2",
            "ciscoEnvMonSupplyState": "1.3.6.1.4.1.9.9.13.1.5.1.3",
        },
    },
    "juniper": {
        "cpu": {
            "jnxOperatingCPU": "1.3.6.1.4.1.2636.3.1.13.1.8",
            "jnxOperating1MinLoadAvg": "1.3.6.1.4.1.2636.3.1.13.1.20",
            "jnxOperating5MinLoadAvg": "1.3.6.1.4.1.2636.3.1.13.1.21",
            "jnxOperating15MinLoadAvg": "1.3.6.1.4.1.2636.3.1.13.1.22",
        },
        "memory": {
            "jnxOperatingBuffer": "1.3.6.1.4.1.2636.3.1.13.1.11",
            "jnxOperatingMemory": "1.3.6.1.4.1.2636.3.1.13.1.15",
            "jnxOperatingHeapUsage": "1.3.6.1.4.1.2636.3.1.13.1.17",
        },
        "environment": {
            "jnxOperatingDescr": "1.3.6.1.4.1.2636.3.1.13.1.5",
            "jnxOperatingState": "1.3.6.1.4.1.2636.3.1.13.1.6",
            "jnxOperatingTemp": "1.3.6.1.4.1.2636.3.1.13.1.7",
            "jnxFruState": "1.3.6.1.4.1.2636.3.1.15.1.8",
            "jnxFruTemp": "1.3.6.1.4.1.2636.3.1.15.1.9",
        },
    },
    "hp": {
        "cpu": {
            "hpSwitchCpuStat": "1.3.6.1.4.1.11.2.14.11.5.1.9.6.1.0",
            "hpicfSensorObjectId": "1.3.6.1.4.1.11.2.14.11.1.2.6.1.2",
        },
        "memory": {
            "hpLocalMemTotalBytes": "1.3.6.1.4.1.11.2.14.11.5.1.1.2.1.1.1.5",
            "hpLocalMemFreeBytes": "1.3.6.1.4.1.11.2.14.11.5.1.1.2.1.1.1.6",
            "hpLocalMemAllocBytes": "1.3.6.1.4.1.11.2.14.11.5.1.1.2.1.1.1.7",
            "hpGlobalMemTotalBytes": "1.3.6.1.4.1.11.2.14.11.5.1.1.2.2.1.1.5",
            "hpGlobalMemFreeBytes": "1.3.6.1.4.1.11.2.14.11.5.1.1.2.2.1.1.6",
        },
        "environment": {
            "hpicfSensorStatus": "1.3.6.1.4.1.11.2.14.11.1.2.6.1.4",
            "hpicfSensorDescr": "1.3.6.1.4.1.11.2.14.11.1.2.6.1.7",
            "hpSystemAirTempValue": "1.3.6.1.4.1.11.2.14.11.5.1.54.2.1.1.4",
            "hpicfFanState": "1.3.6.1.4.1.11.2.14.11.5.1.54.2.2.1.4",
            "hpicfPsState": "1.3.6.1.4.1.11.2.14.11.5.1.55.1.1.1.3",
        },
    },
    "aruba": {
        "cpu": {
            "wlsxSysExtCpuUsedPercent": "1.3.6.1.4.1.14823.2.2.1.1.1.9.0",
        },
        "memory": {
            "wlsxSysExtMemoryUsedPercent": "1.3.6.1.4.1.14823.2.2.1.1.1.10.0",
            "wlsxSysExtMemoryTotal": "1.3.6.1.4.1.14823.2.2.1.1.1.11.0",
            "wlsxSysExtMemoryUsed": "1.3.6.1.4.1.14823.2.2.1.1.1.12.0",
            "wlsxSysExtMemoryFree": "1.3.6.1.4.1.14823.2.2.1.1.1.13.0",
        },
        "environment": {
            "wlsxSysExtFanStatus": "1.3.6.1.4.1.14823.2.2.1.2.1.17.0",
            "sysExtTemperature": "1.3.6.1.4.1.14823.2.2.1.1.1.14.0",
        },
        "wireless": {
            "wlsxSysExtNumAPs": "1.3.6.1.4.1.14823.2.2.1.1.1.1.0",
            "wlsxSysExtNumStations": "1.3.6.1.4.1.14823.2.2.1.1.1.2.0",
        },
    },
    "fortinet": {
        "cpu": {
            "fgSysCpuUsage": "1.3.6.1.4.1.12356.101.4.1.3.0",
            "fgProcessorUsage": "1.3.6.1.4.1.12356.101.4.4.2.1.2",
        },
        "memory": {
            "fgSysMemUsage": "1.3.6.1.4.1.12356.101.4.1.4.0",
            "fgSysMemCapacity": "1.3.6.1.4.1.12356.101.4.1.5.0",
        },
        "session": {
            "fgSysSesCount": "1.3.6.1.4.1.12356.101.4.1.8.0",
            "fgSysSesRate1": "1.3.6.1.4.1.12356.101.4.1.11.0",
        },
        "environment": {
            "fgHwSensorCount": "1.3.6.1.4.1.12356.101.4.3.1.0",
            "fgHwSensorEntName": "1.3.6.1.4.1.12356.101.4.3.2.1.2",
            "fgHwSensorEntValue": "1.3.6.1.4.1.12356.101.4.3.2.1.3",
            "fgHwSensorEntAlarmStatus": "1.3.6.1.4.1.12356.101.4.3.2.1.4",
        },
    },
    "paloalto": {
        "cpu": {
            "panSysCpuMgmt": "1.3.6.1.4.1.25461.2.1.2.3.1.0",
            "panSysCpuData": "1.3.6.1.4.1.25461.2.1.2.3.2.0",
        },
        "memory": {
            "panSysSwMemoryUsed": "1.3.6.1.4.1.25461.2.1.2.3.6.0",
            "panSessionActive": "1.3.6.1.4.1.25461.2.1.2.3.3.0",
        },
        "session": {
            "panSessionUtilization": "1.3.6.1.4.1.25461.2.1.2.3.4.0",
            "panSessionMax": "1.3.6.1.4.1.25461.2.1.2.3.5.0",
        },
        "globalprotect": {
            "panGPGWUtilizationPct": "1.3.6.1.4.1.25461.2.1.2.5.1.1.0",
            "panGPGWUtilizationMaxTunnels": "1.3.6.1.4.1.25461.2.1.2.5.1.2.0",
            "panGPGWUtilizationActiveTunnels": "1.3.6.1.4.1.25461.2.1.2.5.1.3.0",
        },
    },
    "mikrotik": {
        "cpu": {
            "mtxrProcessorLoad": "1.3.6.1.4.1.14988.1.1.3.14.0",
            "mtxrProcessorFrequency": "1.3.6.1.4.1.14988.1.1.3.15.0",
        },
        "memory": {
            "mtxrMemoryTotal": "1.3.6.1.4.1.14988.1.1.3.7.0",
            "mtxrMemoryUsed": "1.3.6.1.4.1.14988.1.1.3.8.0",
        },
        "storage": {
            "mtxrDiskTotal": "1.3.6.1.4.1.14988.1.1.3.9.0",
            "mtxrDiskUsed": "1.3.6.1.4.1.14988.1.1.3.10.0",
        },
        "environment": {
            "mtxrBoardTemperature": "1.3.6.1.4.1.14988.1.1.3.100.0",
            "mtxrCpuTemperature": "1.3.6.1.4.1.14988.1.1.3.101.0",
            "mtxrActiveFanCount": "1.3.6.1.4.1.14988.1.1.3.16.0",
            "mtxrFanSpeed1": "1.3.6.1.4.1.14988.1.1.3.17.0",
            "mtxrFanSpeed2": "1.3.6.1.4.1.14988.1.1.3.18.0",
            "mtxrPowerConsumption": "1.3.6.1.4.1.14988.1.1.3.12.0",
        },
        "wireless": {
            "mtxrWlStatTxRate": "1.3.6.1.4.1.14988.1.1.1.3.1.2",
            "mtxrWlStatRxRate": "1.3.6.1.4.1.14988.1.1.1.3.1.3",
            "mtxrWlStatStrength": "1.3.6.1.4.1.14988.1.1.1.3.1.4",
            "mtxrWlApClientCount": "1.3.6.1.4.1.14988.1.1.1.3.1.6",
        },
    },
    "ubiquiti": {
        "cpu": {
            "hrProcessorLoad": _HR_PROCESSOR_LOAD,
        },
        "memory": {
            "hrStorageDescr": _HR_STORAGE["hrStorageDescr"],
            "hrStorageSize": _HR_STORAGE["hrStorageSize"],
            "hrStorageUsed": _HR_STORAGE["hrStorageUsed"],
        },
        "environment": {
            "unifiTemperature": "1.3.6.1.4.1.41112.1.6.1.1.1.3",
        },
        "wireless": {
            "unifiApSystemModel": "1.3.6.1.4.1.41112.1.6.1.1.1.1",
            "unifiApSystemUptime": "1.3.6.1.4.1.41112.1.6.1.1.1.4",
            "unifiVapEssid": "1.3.6.1.4.1.41112.1.6.1.2.1.6",
            "unifiVapNumStations": "1.3.6.1.4.1.41112.1.6.1.2.1.8",
        },
    },
    # net-snmp (UCD-SNMP-MIB), also used for ESXi
    "linux": {
        "cpu": {
            "ssCpuRawUser": "1.3.6.1.4.1.2021.11.50.0",
            "ssCpuRawNice": "1.3.6.1.4.1.2021.11.51.0",
            "ssCpuRawSystem": "1.3.6.1.4.1.2021.11.52.0",
            "ssCpuRawIdle": "1.3.6.1.4.1.2021.11.53.0",
            "ssCpuRawWait": "1.3.6.1.4.1.2021.11.54.0",
            "ssCpuRawKernel": "1.3.6.1.4.1.2021.11.55.0",
            "ssCpuRawInterrupt": "1.3.6.1.4.1.2021.11.56.0",
            "ssCpuUser": "1.3.6.1.4.1.2021.11.9.0",
            "ssCpuSystem": "1.3.6.1.4.1.2021.11.10.0",
            "ssCpuIdle": "1.3.6.1.4.1.2021.11.11.0",
            "laTable": "1.3.6.1.4.1.2021.10.1",
            "laLoad1": "1.3.6.1.4.1.2021.10.1.3.1",
            "laLoad5": "1.3.6.1.4.1.2021.10.1.3.2",
            "laLoad15": "1.3.6.1.4.1.2021.10.1.3.3",
        },
        "memory": {
            "memTotalSwap": "1.3.6.1.4.1.2021.4.3.0",
            "memAvailSwap": "1.3.6.1.4.1.2021.4.4.0",
            "memTotalReal": "1.3.6.1.4.1.2021.4.5.0",
            "memAvailReal": "1.3.6.1.4.1.2021.4.6.0",
            "memTotalFree": "1.3.6.1.4.1.2021.4.11.0",
            "memShared": "1.3.6.1.4.1.2021.4.13.0",
            "memBuffer": "1.3.6.1.4.1.2021.4.14.0",
            "memCached": "1.3.6.1.4.1.2021.4.15.0",
        },
        "disk": {
            "dskTable": "1.3.6.1.4.1.2021.9.1",
            "dskIndex": "1.3.6.1.4.1.2021.9.1.1",
            "dskPath": "1.3.6.1.4.1.2021.9.1.2",
            "dskDevice": "1.3.6.1.4.1.2021.9.1.3",
            "dskTotal": "1.3.6.1.4.1.2021.9.1.6",
            "dskAvail": "1.3.6.1.4.1.2021.9.1.7",
            "dskUsed": "1.3.6.1.4.1.2021.9.1.8",
            "dskPercent": "1.3.6.1.4.1.2021.9.1.9",
            "dskPercentNode": "1.3.6.1.4.1.2021.9.1.10",
        },
        "process": {
            "prTable": "1.3.6.1.4.1.2021.2.1",
            "prNames": "1.3.6.1.4.1.2021.2.1.2",
            "prCount": "1.3.6.1.4.1.2021.2.1.5",
        },
        "system": {
            "ssIOSent": "1.3.6.1.4.1.2021.11.1.0",
            "ssIOReceive": "1.3.6.1.4.1.2021.11.2.0",
            "ssSwapIn": "1.3.6.1.4.1.2021.11.3.0",
            "ssSwapOut": "1.3.6.1.4.1.2021.11.4.0",
            "ssSysInterrupts": "1.3.6.1.4.1.2021.11.7.0",
            "ssSysContext": "1.3.6.1.4.1.2021.11.8.0",
        },
        "environment": {
            "lmTempSensorsIndex": "1.3.6.1.4.1.2021.13.16.2.1.1",
            "lmTempSensorsDevice": "1.3.6.1.4.1.2021.13.16.2.1.2",
            "lmTempSensorsValue": "1.3.6.1.4.1.2021.13.16.2.1.3",
            "lmFanSensorsIndex": "1.3.6.1.4.1.2021.13.16.3.1.1",
            "lmFanSensorsDevice": "1.3.6.1.4.1.2021.13.16.3.1.2",
            "lmFanSensorsValue": "1.3.6.1.4.1.2021.13.16.3.1.3",
        },
    },
    "windows": {
        "cpu": {
            "hrProcessorLoad": _HR_PROCESSOR_LOAD,
        },
        "memory": {
            "hrStorageDescr": _HR_STORAGE["hrStorageDescr"],
            "hrStorageAllocationUnits": _HR_STORAGE["hrStorageAllocationUnits"],
            "hrStorageSize": _HR_STORAGE["hrStorageSize"],
            "hrStorageUsed": _HR_STORAGE["hrStorageUsed"],
        },
        "process": {
            "hrSWRunName": "1.3.6.1.2.1.25.4.2.1.2",
            "hrSWRunStatus": "1.3.6.1.2.1.25.4.2.1.7",
        },
        "services": {
            "svSvcName": "1.3.6.1.4.1.77.1.2.3.1.1",
            "svSvcInstalledState": "1.3.6.1.4.1.77.1.2.3.1.2",
            "svSvcOperatingState": "1.3.6.1.4.1.77.1.2.3.1.3",
        },
    },
    "synology": {
        "cpu": {
            "hrProcessorLoad": _HR_PROCESSOR_LOAD,
        },
        "memory": {
            "hrStorageDescr": _HR_STORAGE["hrStorageDescr"],
            "hrStorageSize": _HR_STORAGE["hrStorageSize"],
            "hrStorageUsed": _HR_STORAGE["hrStorageUsed"],
        },
        "storage": {
            "spaceTotal": "1.3.6.1.4.1.6574.2.1.1.3",
            "spaceUsed": "1.3.6.1.4.1.6574.2.1.1.4",
        },
        "disk": {
            "diskID": "1.3.6.1.4.1.6574.2.1.1.2",
            "diskStatus": "1.3.6.1.4.1.6574.2.1.1.5",
            "diskTemperature": "1.3.6.1.4.1.6574.2.1.1.6",
        },
        "raid": {
            "raidName": "1.3.6.1.4.1.6574.3.1.1.2",
            "raidStatus": "1.3.6.1.4.1.6574.3.1.1.3",
        },
        "system": {
            "systemStatus": "1.3.6.1.4.1.6574.1.1.0",
            "temperature": "1.3.6.1.4.1.6574.1.2.0",
            "powerStatus": "1.3.6.1.4.1.6574.1.3.0",
            "systemFan": "1.3.6.1.4.1.6574.1.4.1.0",
            "cpuFan": "1.3.6.1.4.1.6574.1.4.2.0",
            "modelName": "1.3.6.1.4.1.6574.1.5.1.0",
            "serialNumber": "1.3.6.1.4.1.6574.1.5.2.0",
            "dsmVersion": "1.3.6.1.4.1.6574.1.5.3.0",
        },
        "environment": {
            "temperature": "1.3.6.1.4.1.6574.1.2.0",
        },
    },
    "qnap": {
        "cpu": {
            "cpuUsage": "1.3.6.1.4.1.24681.1.2.1.0",
        },
        "memory": {
            "systemTotalMem": "1.3.6.1.4.1.24681.1.2.2.0",
            "systemFreeMem": "1.3.6.1.4.1.24681.1.2.3.0",
        },
        "storage": {
            "sysVolumeTotalSize": "1.3.6.1.4.1.24681.1.2.17.1.4",
            "sysVolumeFreeSize": "1.3.6.1.4.1.24681.1.2.17.1.5",
            "sysVolumeStatus": "1.3.6.1.4.1.24681.1.2.17.1.6",
        },
        "disk": {
            "hdDescr": "1.3.6.1.4.1.24681.1.2.11.1.2",
            "hdTemperature": "1.3.6.1.4.1.24681.1.2.11.1.3",
            "hdStatus": "1.3.6.1.4.1.24681.1.2.11.1.4",
            "hdModel": "1.3.6.1.4.1.24681.1.2.11.1.5",
            "hdSmartInfo": "1.3.6.1.4.1.24681.1.2.11.1.7",
        },
        "system": {
            "systemUptime": "1.3.6.1.4.1.24681.1.2.4.0",
            "systemCPUTemp": "1.3.6.1.4.1.24681.1.2.5.0",
            "systemTemp": "1.3.6.1.4.1.24681.1.2.6.0",
        },
        "environment": {
            "systemCPUTemp": "1.3.6.1.4.1.24681.1.2.5.0",
            "systemTemp": "1.3.6.1.4.1.24681.1.2.6.0",
        },
        "fan": {
            "sysFanDescr": "1.3.6.1.4.1.24681.1.2.15.1.2",
            "sysFanSpeed": "1.3.6.1.4.1.24681.1.2.15.1.3",
        },
    },
    # iDRAC / PowerEdge
    "dell": {
        "cpu": {
            "processorDeviceStatusStatus": "1.3.6.1.4.1.674.10892.5.4.1100.30.1.5",
            "processorDeviceMaximumSpeed": "1.3.6.1.4.1.674.10892.5.4.1100.30.1.11",
        },
        "memory": {
            "memoryDeviceStatus": "1.3.6.1.4.1.674.10892.5.4.1100.50.1.5",
            "memoryDeviceSize": "1.3.6.1.4.1.674.10892.5.4.1100.50.1.14",
        },
        "environment": {
            "temperatureStatus": "1.3.6.1.4.1.674.10892.5.4.700.20.1.5",
            "temperatureReading": "1.3.6.1.4.1.674.10892.5.4.700.20.1.6",
            "coolingDeviceStatus": "1.3.6.1.4.1.674.10892.5.4.700.12.1.5",
            "coolingDeviceReading": "1.3.6.1.4.1.674.10892.5.4.700.12.1.6",
            "powerSupplyStatus": "1.3.6.1.4.1.674.10892.5.4.600.12.1.5",
        },
        "storage": {
            "virtualDiskState": "1.3.6.1.4.1.674.10892.5.5.1.20.140.1.1.4",
            "physicalDiskState": "1.3.6.1.4.1.674.10892.5.5.1.20.130.4.1.4",
        },
    },
    "generic": {
        "cpu": {
            "hrProcessorLoad": _HR_PROCESSOR_LOAD,
        },
        "memory": {
            "hrStorageDescr": _HR_STORAGE["hrStorageDescr"],
            "hrStorageAllocationUnits": _HR_STORAGE["hrStorageAllocationUnits"],
            "hrStorageSize": _HR_STORAGE["hrStorageSize"],
            "hrStorageUsed": _HR_STORAGE["hrStorageUsed"],
        },
        "system": {
            "hrSystemUptime": STANDARD_OIDS["hrSystem"]["hrSystemUptime"],
            "hrSystemNumUsers": STANDARD_OIDS["hrSystem"]["hrSystemNumUsers"],
            "hrSystemProcesses": STANDARD_OIDS["hrSystem"]["hrSystemProcesses"],
        },
    },
}

# sysDescr patterns, first match wins. Order matters: "cisco" must be tested
# before the bare "asa" token, "linux" before the NAS families. Short model
# tokens are word-bounded so hostnames such as "casablanca" do not match.
_PATTERN_TABLE = [
    # Cisco
    (r"cisco", "cisco", "router"),
    (r"ios(-|\s)?xe", "cisco", "router"),
    (r"ios(-|\s)?xr", "cisco", "router"),
    (r"nx(-|\s)?os", "cisco", "switch"),
    (r"catalyst", "cisco", "switch"),
    (r"nexus", "cisco", "switch"),
    (r"adaptive security appliance", "cisco", "firewall"),
    (r"\basa\b", "cisco", "firewall"),
    (r"meraki", "cisco", "access_point"),
    # Juniper
    (r"juniper", "juniper", "router"),
    (r"junos", "juniper", "router"),
    (r"\bsrx\d*\b", "juniper", "firewall"),
    (r"\bex\d{4}\b", "juniper", "switch"),
    (r"\bqfx\d*\b", "juniper", "switch"),
    # HP / Aruba
    (r"aruba", "aruba", "switch"),
    (r"arubaos", "aruba", "access_point"),
    (r"procurve", "hp", "switch"),
    (r"hp\s+switch", "hp", "switch"),
    (r"hewlett[\s-]?packard", "hp", "switch"),
    (r"comware", "hp", "switch"),
    # Fortinet
    (r"fortinet", "fortinet", "firewall"),
    (r"fortigate", "fortinet", "firewall"),
    (r"fortios", "fortinet", "firewall"),
    (r"fortiswitch", "fortinet", "switch"),
    (r"fortiap", "fortinet", "access_point"),
    # Palo Alto
    (r"palo\s*alto", "paloalto", "firewall"),
    (r"pan-?os", "paloalto", "firewall"),
    # MikroTik
    (r"mikrotik", "mikrotik", "router"),
    (r"routeros", "mikrotik", "router"),
    (r"routerboard", "mikrotik", "router"),
    (r"\bswos\b", "mikrotik", "switch"),
    # Ubiquiti
    (r"ubiquiti", "ubiquiti", "access_point"),
    (r"unifi", "ubiquiti", "access_point"),
    (r"edgeswitch", "ubiquiti", "switch"),
    (r"edgerouter", "ubiquiti", "router"),
    (r"\busg\b", "ubiquiti", "firewall"),
    # Linux distributions
    (r"linux", "linux", "server"),
    (r"ubuntu", "linux", "server"),
    (r"debian", "linux", "server"),
    (r"centos", "linux", "server"),
    (r"red\s*hat", "linux", "server"),
    (r"\brhel\b", "linux", "server"),
    (r"fedora", "linux", "server"),
    (r"\brocky\b", "linux", "server"),
    (r"\balma(linux)?\b", "linux", "server"),
    (r"suse", "linux", "server"),
    (r"oracle\s*linux", "linux", "server"),
    (r"amazon\s*linux", "linux", "server"),
    (r"net-snmp", "linux", "server"),
    # Windows
    (r"windows", "windows", "server"),
    (r"microsoft", "windows", "server"),
    (r"win32", "windows", "server"),
    # NAS
    (r"synology", "synology", "server"),
    (r"diskstation", "synology", "server"),
    (r"rackstation", "synology", "server"),
    (r"\bdsm\b", "synology", "server"),
    (r"qnap", "qnap", "server"),
    (r"turbo\s*nas", "qnap", "server"),
    (r"\bqts\b", "qnap", "server"),
    # Dell
    (r"dell", "dell", "server"),
    (r"idrac", "dell", "server"),
    (r"poweredge", "dell", "server"),
    (r"force10", "dell", "switch"),
    # VMware hosts run the net-snmp agent
    (r"vmware", "linux", "server"),
    (r"esxi", "linux", "server"),
]

VENDOR_PATTERNS = [
    (re.compile(pattern, re.IGNORECASE), VendorInfo(vendor, device_type))
    for pattern, vendor, device_type in _PATTERN_TABLE
]

CATEGORIES = ("cpu", "memory", "environment", "storage", "disk", "system")


def resolve_vendor(sys_descr: Optional[str]) -> VendorInfo:
    """Map a sysDescr string to (vendor, device_type). Never raises."""
    if not sys_descr:
        return GENERIC_VENDOR
    for pattern, info in VENDOR_PATTERNS:
        if pattern.search(sys_descr):
            return info
    return GENERIC_VENDOR


def normalize_vendor(vendor: Optional[str]) -> str:
    key = (vendor or "").strip().lower()
    return key if key in VENDOR_OIDS else Vendor.GENERIC.value


def get_vendor_oids(vendor: Optional[str]) -> Dict[str, Dict[str, str]]:
    return VENDOR_OIDS[normalize_vendor(vendor)]


def oids_for(vendor: Optional[str], category: str) -> Optional[Dict[str, str]]:
    """Named OID map for a category, falling back to the generic vendor."""
    table = get_vendor_oids(vendor).get(category)
    if table is None:
        table = VENDOR_OIDS["generic"].get(category)
    return table


def get_cpu_oids(vendor: Optional[str]) -> Dict[str, str]:
    return oids_for(vendor, "cpu")


def get_memory_oids(vendor: Optional[str]) -> Dict[str, str]:
    return oids_for(vendor, "memory")


def get_environment_oids(vendor: Optional[str]) -> Optional[Dict[str, str]]:
    # No generic fallback: most agents expose no temperature at all
    return get_vendor_oids(vendor).get("environment")


def get_storage_oids(vendor: Optional[str]) -> Optional[Dict[str, str]]:
    oids = get_vendor_oids(vendor)
    return oids.get("storage") or oids.get("disk")


def get_system_oids(vendor: Optional[str]) -> Dict[str, str]:
    return oids_for(vendor, "system")


def get_interface_oids(use_64bit: bool = True) -> Dict[str, str]:
    base = STANDARD_OIDS["interfaces"]
    ext = STANDARD_OIDS["ifXTable"]
    return {
        "ifDescr": base["ifDescr"],
        "ifName": ext["ifName"],
        "ifAlias": ext["ifAlias"],
        "ifType": base["ifType"],
        "ifSpeed": base["ifSpeed"],
        "ifHighSpeed": ext["ifHighSpeed"],
        "ifPhysAddress": base["ifPhysAddress"],
        "ifAdminStatus": base["ifAdminStatus"],
        "ifOperStatus": base["ifOperStatus"],
        "ifInOctets": ext["ifHCInOctets"] if use_64bit else base["ifInOctets"],
        "ifOutOctets": ext["ifHCOutOctets"] if use_64bit else base["ifOutOctets"],
        "ifInErrors": base["ifInErrors"],
        "ifOutErrors": base["ifOutErrors"],
        "ifInDiscards": base["ifInDiscards"],
        "ifOutDiscards": base["ifOutDiscards"],
    }


def build_interface_oid(column_oid: str, if_index: int) -> str:
    return f"{column_oid}.{if_index}"


def supported_vendors() -> List[str]:
    return list(VENDOR_OIDS.keys())


def is_vendor_supported(vendor: Optional[str]) -> bool:
    return bool(vendor) and vendor.lower() in VENDOR_OIDS
