"""Minimal SOAP 1.1 helpers for the VIES and AEAT adapters.

Both registries expose tiny single-operation services, so envelopes are
built as strings and responses read with ``xml.etree``.  Lookups match on
local element names because the two services disagree on namespace
prefixes between their test and live endpoints.
"""

from __future__ import annotations

from dataclasses import dataclass
from xml.etree import ElementTree as ET
from xml.sax.saxutils import escape

SOAP_ENV_NS = "http://schemas.xmlsoap.org/soap/envelope/"
SOAP_HEADERS = {"Content-Type": "text/xml; charset=UTF-8", "SOAPAction": ""}


@dataclass(frozen=True)
class SoapFault:
    """A parsed ``<soap:Fault>``."""

    code: str
    message: str


def build_envelope(body: str, namespaces: dict[str, str]) -> str:
    """Wrap an already-serialized *body* in a SOAP 1.1 envelope."""
    ns_attrs = " ".join(f'xmlns:{prefix}="{uri}"' for prefix, uri in namespaces.items())
    return (
        '<?xml version="1.0" encoding="UTF-8"?>'
        f'<soapenv:Envelope xmlns:soapenv="{SOAP_ENV_NS}" {ns_attrs}>'
        "<soapenv:Header/>"
        f"<soapenv:Body>{body}</soapenv:Body>"
        "</soapenv:Envelope>"
    )


def element(tag: str, text: str) -> str:
    """Serialize a leaf element with XML-escaped text."""
    return f"<{tag}>{escape(text)}</{tag}>"


def parse_xml(payload: str | bytes) -> ET.Element:
    """Parse a response body; raises ``xml.etree.ElementTree.ParseError``."""
    return ET.fromstring(payload)


def local_name(tag: str) -> str:
    return tag.rsplit("}", 1)[-1]


def find_all(root: ET.Element, name: str) -> list[ET.Element]:
    """All descendants of *root* whose local tag name is *name*."""
    return [el for el in root.iter() if local_name(el.tag) == name]


def find_text(root: ET.Element, name: str) -> str | None:
    """Text of the first descendant named *name*, or ``None`` if absent."""
    for el in root.iter():
        if local_name(el.tag) == name:
            return (el.text or "").strip()
    return None


def extract_fault(root: ET.Element) -> SoapFault | None:
    """Return the envelope's fault, if the response is one."""
    faults = find_all(root, "Fault")
    if not faults:
        return None
    fault = faults[0]
    code = find_text(fault, "faultcode") or ""
    message = find_text(fault, "faultstring") or ""
    return SoapFault(code=code, message=message)
