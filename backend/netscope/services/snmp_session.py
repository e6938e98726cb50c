"""
SNMP Session Adapter
One short-lived pysnmp engine per collection call. Normalizes agent replies
into plain Python values (see decode_value) and maps transport failures onto
SnmpError / SnmpTimeoutError.
"""
import asyncio
import ipaddress
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Tuple, Union

from pysnmp.hlapi.v3arch.asyncio import (
    get_cmd, walk_cmd, bulk_walk_cmd, SnmpEngine, CommunityData, UsmUserData,
    UdpTransportTarget, Udp6TransportTarget, ContextData, ObjectType, ObjectIdentity,
    USM_AUTH_NONE, USM_AUTH_HMAC96_MD5, USM_AUTH_HMAC96_SHA, USM_AUTH_HMAC128_SHA224,
    USM_AUTH_HMAC192_SHA256, USM_AUTH_HMAC256_SHA384, USM_AUTH_HMAC384_SHA512,
    USM_PRIV_NONE, USM_PRIV_CBC56_DES, USM_PRIV_CFB128_AES, USM_PRIV_CFB192_AES,
    USM_PRIV_CFB256_AES,
)
from pysnmp.proto import rfc1902

from netscope.config import settings
from netscope.crypto import decrypt_secret

logger = logging.getLogger(__name__)

AUTH_PROTOCOLS = {
    "MD5": USM_AUTH_HMAC96_MD5,
    "SHA": USM_AUTH_HMAC96_SHA,
    "SHA-224": USM_AUTH_HMAC128_SHA224,
    "SHA-256": USM_AUTH_HMAC192_SHA256,
    "SHA-384": USM_AUTH_HMAC256_SHA384,
    "SHA-512": USM_AUTH_HMAC384_SHA512,
}

PRIV_PROTOCOLS = {
    "DES": USM_PRIV_CBC56_DES,
    "AES": USM_PRIV_CFB128_AES,
    "AES-128": USM_PRIV_CFB128_AES,
    "AES-192": USM_PRIV_CFB192_AES,
    "AES-256": USM_PRIV_CFB256_AES,
}

SECURITY_LEVELS = ("noAuthNoPriv", "authNoPriv", "authPriv")

_ABSENT_TYPES = ("NoSuchObject", "NoSuchInstance", "EndOfMibView")


class SnmpError(Exception):
    """Base SNMP error."""


class SnmpTimeoutError(SnmpError):
    """The agent did not answer within timeout after all retries."""


# ── Value decoding ───────────────────────────────────────────────────────────

@dataclass(frozen=True)
class SnmpValue:
    kind: str  # "string", "integer" or "absent"
    value: Union[int, str, None] = None

    @property
    def present(self) -> bool:
        return self.kind != "absent"


ABSENT = SnmpValue("absent")


def _is_printable(raw: bytes) -> bool:
    return all(32 <= b < 127 or b in (9, 10, 13) for b in raw)


def _decode_octets(raw: bytes) -> SnmpValue:
    if not raw:
        return SnmpValue("string", "")
    if _is_printable(raw):
        return SnmpValue("string", raw.decode("ascii"))
    if len(raw) in (1, 2, 4, 8):
        # Opaque-encoded counters and gauges
        return SnmpValue("integer", int.from_bytes(raw, "big"))
    return SnmpValue("string", "0x" + raw.hex())


def decode_value(val: Any) -> SnmpValue:
    """Normalize one varbind value.

    Exception sentinels become ABSENT, integer-like types become int, printable
    octet strings become str. Binary octet strings of 1, 2, 4 or 8 bytes are
    read as unsigned big-endian integers; any other binary payload (MAC
    addresses, bitmaps) is returned as a 0x-prefixed hex string.
    """
    if val is None or val.__class__.__name__ in _ABSENT_TYPES:
        return ABSENT
    if isinstance(val, bool):
        return SnmpValue("integer", int(val))
    if isinstance(val, int):
        return SnmpValue("integer", val)
    if isinstance(val, str):
        return SnmpValue("string", val)
    if isinstance(val, (bytes, bytearray)):
        return _decode_octets(bytes(val))
    if isinstance(val, rfc1902.IpAddress):
        return SnmpValue("string", ".".join(str(b) for b in val.asOctets()))
    if isinstance(val, rfc1902.OctetString):
        return _decode_octets(val.asOctets())
    try:
        return SnmpValue("integer", int(val))
    except (TypeError, ValueError):
        text = val.prettyPrint() if hasattr(val, "prettyPrint") else str(val)
        return SnmpValue("string", text)


# ── Targets and credentials ──────────────────────────────────────────────────

@dataclass
class SnmpTarget:
    host: str
    port: int = 161
    version: str = "2c"
    timeout: float = settings.SNMP_TIMEOUT
    retries: int = settings.SNMP_RETRIES


@dataclass
class SnmpCredentials:
    """Decrypted credentials. Built per call and never cached."""
    community: Optional[str] = None
    security_level: str = "noAuthNoPriv"
    username: Optional[str] = None
    auth_protocol: Optional[str] = None
    auth_password: Optional[str] = field(default=None, repr=False)
    priv_protocol: Optional[str] = None
    priv_password: Optional[str] = field(default=None, repr=False)


def target_for_device(device) -> SnmpTarget:
    return SnmpTarget(
        host=device.ip_address,
        port=device.snmp_port or settings.SNMP_PORT,
        version=device.snmp_version or settings.SNMP_VERSION,
    )


def credentials_for_device(device) -> SnmpCredentials:
    cred = device.credentials
    if cred is None:
        return SnmpCredentials(community=settings.SNMP_COMMUNITY)
    return SnmpCredentials(
        community=decrypt_secret(cred.community_string) or settings.SNMP_COMMUNITY,
        security_level=cred.security_level or "noAuthNoPriv",
        username=cred.username,
        auth_protocol=cred.auth_protocol,
        auth_password=decrypt_secret(cred.auth_password),
        priv_protocol=cred.priv_protocol,
        priv_password=decrypt_secret(cred.priv_password),
    )


def make_auth_data(target: SnmpTarget, credentials: SnmpCredentials):
    if target.version == "3":
        level = credentials.security_level or "noAuthNoPriv"
        if level not in SECURITY_LEVELS:
            raise SnmpError(f"Unknown SNMPv3 security level: {level}")
        if not credentials.username:
            raise SnmpError("SNMPv3 requires a username")
        auth_protocol, priv_protocol = USM_AUTH_NONE, USM_PRIV_NONE
        auth_key = priv_key = None
        if level != "noAuthNoPriv":
            auth_protocol = AUTH_PROTOCOLS.get((credentials.auth_protocol or "SHA").upper())
            if auth_protocol is None:
                raise SnmpError(f"Unsupported auth protocol: {credentials.auth_protocol}")
            auth_key = credentials.auth_password
        if level == "authPriv":
            priv_protocol = PRIV_PROTOCOLS.get((credentials.priv_protocol or "AES").upper())
            if priv_protocol is None:
                raise SnmpError(f"Unsupported privacy protocol: {credentials.priv_protocol}")
            priv_key = credentials.priv_password
        return UsmUserData(
            credentials.username,
            authKey=auth_key,
            privKey=priv_key,
            authProtocol=auth_protocol,
            privProtocol=priv_protocol,
        )
    mp_model = 0 if target.version == "1" else 1
    return CommunityData(credentials.community or settings.SNMP_COMMUNITY, mpModel=mp_model)


def _is_ipv6(host: str) -> bool:
    try:
        return ipaddress.ip_address(host).version == 6
    except ValueError:
        return False


def _raise_for_indication(error_indication, host: str, what: str) -> None:
    text = str(error_indication)
    if error_indication.__class__.__name__ == "RequestTimedOut" or "timeout" in text.lower():
        raise SnmpTimeoutError(f"{what} timeout: {host}")
    raise SnmpError(f"{what} error on {host}: {text}")


# ── Session ──────────────────────────────────────────────────────────────────

class SnmpSession:
    """Async SNMP session bound to one device.

    Usage::

        async with SnmpSession(target, credentials) as session:
            descr = await session.get("1.3.6.1.2.1.1.1.0")
    """

    def __init__(self, target: SnmpTarget, credentials: SnmpCredentials,
                 max_repetitions: int = settings.SNMP_MAX_REPETITIONS,
                 walk_timeout: float = settings.SNMP_WALK_TIMEOUT):
        self.target = target
        self._credentials = credentials
        self._max_repetitions = max_repetitions
        self._walk_timeout = walk_timeout
        self._engine: Optional[SnmpEngine] = None
        self._transport = None
        self._auth = None

    async def open(self) -> "SnmpSession":
        self._auth = make_auth_data(self.target, self._credentials)
        transport_cls = Udp6TransportTarget if _is_ipv6(self.target.host) else UdpTransportTarget
        try:
            self._transport = await transport_cls.create(
                (self.target.host, self.target.port),
                timeout=self.target.timeout,
                retries=self.target.retries,
            )
        except Exception as e:
            raise SnmpError(f"Cannot resolve {self.target.host}: {e}") from e
        self._engine = SnmpEngine()
        return self

    async def close(self) -> None:
        if self._engine is None:
            return
        try:
            self._engine.close_dispatcher()
        except Exception as e:
            logger.warning(f"Error closing SNMP engine for {self.target.host}: {e}")
        finally:
            self._engine = None

    async def __aenter__(self) -> "SnmpSession":
        return await self.open()

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def _get_raw(self, oids: List[str]) -> Optional[List[Tuple[str, Any]]]:
        """GET a batch. Returns None when a v1 agent rejects the PDU with noSuchName."""
        if self._engine is None:
            raise SnmpError("Session is not open")
        error_indication, error_status, error_index, var_binds = await get_cmd(
            self._engine,
            self._auth,
            self._transport,
            ContextData(),
            *[ObjectType(ObjectIdentity(oid)) for oid in oids],
            lookupMib=False,
        )
        if error_indication:
            _raise_for_indication(error_indication, self.target.host, "SNMP GET")
        if error_status:
            status = error_status.prettyPrint() if hasattr(error_status, "prettyPrint") else str(error_status)
            if status == "noSuchName":
                return None
            raise SnmpError(f"SNMP GET error status {status} on {self.target.host}")
        return [(str(oid), val) for oid, val in var_binds]

    async def get(self, oid: str) -> Union[int, str, None]:
        rows = await self._get_raw([oid])
        if not rows:
            return None
        return decode_value(rows[0][1]).value

    async def get_multiple(self, oids: Iterable[str]) -> Dict[str, Union[int, str]]:
        """GET several OIDs in one PDU. Absent OIDs are left out of the result."""
        oids = list(oids)
        if not oids:
            return {}
        rows = await self._get_raw(oids)
        if rows is None:
            # v1 fails the whole PDU on one missing OID, retry them one by one
            result = {}
            for oid in oids:
                value = await self.get(oid)
                if value is not None:
                    result[oid] = value
            return result
        result = {}
        for oid, val in rows:
            decoded = decode_value(val)
            if decoded.present:
                result[oid] = decoded.value
        return result

    async def walk(self, prefix: str) -> List[Tuple[str, Union[int, str]]]:
        """Walk a subtree. Returns (suffix, value) pairs in agent order.

        Raises SnmpTimeoutError when the agent stops answering and SnmpError
        when the walk runs past its wall-clock budget.
        """
        if self._engine is None:
            raise SnmpError("Session is not open")
        try:
            return await asyncio.wait_for(self._walk_impl(prefix.rstrip(".")), timeout=self._walk_timeout)
        except asyncio.TimeoutError:
            raise SnmpError(f"SNMP WALK of {prefix} on {self.target.host} exceeded {self._walk_timeout}s")

    async def _walk_impl(self, prefix: str) -> List[Tuple[str, Union[int, str]]]:
        if self.target.version == "1":
            iterator = walk_cmd(
                self._engine, self._auth, self._transport, ContextData(),
                ObjectType(ObjectIdentity(prefix)),
                lexicographicMode=False, lookupMib=False,
            )
        else:
            iterator = bulk_walk_cmd(
                self._engine, self._auth, self._transport, ContextData(),
                0, self._max_repetitions,
                ObjectType(ObjectIdentity(prefix)),
                lexicographicMode=False, lookupMib=False,
            )

        results = []
        async for error_indication, error_status, error_index, var_binds in iterator:
            if error_indication:
                _raise_for_indication(error_indication, self.target.host, "SNMP WALK")
            if error_status:
                status = error_status.prettyPrint() if hasattr(error_status, "prettyPrint") else str(error_status)
                if status == "noSuchName":
                    break  # v1 end of MIB
                raise SnmpError(f"SNMP WALK error status {status} on {self.target.host}")
            for oid, val in var_binds:
                oid_str = str(oid)
                if not oid_str.startswith(prefix + "."):
                    return results
                decoded = decode_value(val)
                if not decoded.present:
                    return results
                results.append((oid_str[len(prefix) + 1:], decoded.value))
        return results
