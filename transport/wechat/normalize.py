"""
WeChat Message Parsing

PURE CONVERSION - NO LOGIC, NO I/O

Converts the platform's XML message body into InboundMessage and renders
passive text replies back to XML.
- FromUserName, ToUserName and MsgType are required
- Everything else is read permissively and defaults to empty
"""

import time
from typing import Any, Optional
from xml.parsers.expat import ExpatError

import xmltodict

from .schemas import InboundMessage, MsgType


class MalformedMessage(Exception):
    """Message body is not parseable platform XML."""
    pass


_REQUIRED_FIELDS = ("FromUserName", "ToUserName", "MsgType")

# XML element -> InboundMessage field, for the optional string fields
_OPTIONAL_FIELDS = {
    "Content": "content",
    "EventKey": "event_key",
    "MediaId": "media_id",
    "Recognition": "recognition",
    "PicUrl": "pic_url",
    "Location_X": "location_x",
    "Location_Y": "location_y",
    "Scale": "scale",
    "Label": "label",
    "Title": "title",
    "Description": "description",
    "Url": "url",
}


def _text(value: Any) -> str:
    """Flatten an xmltodict value to a string ("" for missing/nested)."""
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    if isinstance(value, dict):
        # Element with attributes: xmltodict puts the text under "#text"
        return str(value.get("#text", ""))
    return str(value)


def parse_message(xml_body: str) -> InboundMessage:
    """
    Parse a (decrypted) platform XML message.

    Args:
        xml_body: Raw XML, e.g. <xml><ToUserName>...</ToUserName>...</xml>

    Returns:
        InboundMessage

    Raises:
        MalformedMessage: XML is unparseable or a required field is missing
    """

    try:
        parsed = xmltodict.parse(xml_body, strip_whitespace=False)
    except ExpatError as e:
        raise MalformedMessage(f"Invalid XML: {e}")

    root = parsed.get("xml") if isinstance(parsed, dict) else None
    if not isinstance(root, dict):
        raise MalformedMessage("Missing <xml> root element")

    missing = [name for name in _REQUIRED_FIELDS if not _text(root.get(name)).strip()]
    if missing:
        raise MalformedMessage(f"Missing required fields: {', '.join(missing)}")

    raw_type = _text(root["MsgType"]).strip()
    msg_type = MsgType.from_raw(raw_type)

    try:
        create_time = int(_text(root.get("CreateTime")) or 0)
    except ValueError:
        create_time = 0

    fields = {
        attr: _text(root.get(element))
        for element, attr in _OPTIONAL_FIELDS.items()
    }

    event = None
    if msg_type == MsgType.EVENT:
        event = _text(root.get("Event")).strip() or None

    return InboundMessage(
        from_user=_text(root["FromUserName"]).strip(),
        to_user=_text(root["ToUserName"]).strip(),
        msg_type=msg_type,
        raw_type=raw_type,
        create_time=create_time,
        msg_id=_text(root.get("MsgId")).strip() or None,
        event=event,
        **fields,
    )


def _cdata(value: str) -> str:
    # "]]>" cannot appear inside one CDATA section; split it across two
    return "<![CDATA[" + value.replace("]]>", "]]]]><![CDATA[>") + "]]>"


def build_text_reply(
    to_user: str,
    from_user: str,
    content: str,
    create_time: Optional[int] = None,
) -> str:
    """
    Render a passive text reply.

    Args:
        to_user: Recipient openid (the inbound FromUserName)
        from_user: Official Account id (the inbound ToUserName)
        content: Reply text
        create_time: Epoch seconds, defaults to now
    """
    if create_time is None:
        create_time = int(time.time())

    return (
        "<xml>"
        f"<ToUserName>{_cdata(to_user)}</ToUserName>"
        f"<FromUserName>{_cdata(from_user)}</FromUserName>"
        f"<CreateTime>{create_time}</CreateTime>"
        "<MsgType><![CDATA[text]]></MsgType>"
        f"<Content>{_cdata(content)}</Content>"
        "</xml>"
    )
