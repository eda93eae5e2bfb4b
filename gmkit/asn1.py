"""ASN.1 DER编解码，ITU-T X.690

只实现SM2签名需要的INTEGER和SEQUENCE。解码结果是指向源数据的memoryview（不复制），
在使用这些视图期间不应修改源数据；需要长期保存时请用bytes()复制。
"""
from collections import namedtuple
from enum import IntEnum
from typing import Union, Tuple, List, Optional
import xml.etree.ElementTree as ET

from .commons import EncodingError, ValidationError
from .encoding import hex_to_bytes

Octets = Union[bytes, bytearray, memoryview]

SM2_COMPONENT_BYTE_LEN = 32
RAW_SIGNATURE_BYTE_LEN = 2 * SM2_COMPONENT_BYTE_LEN
MAX_LENGTH_OCTETS = 4


class ASN1Tag(IntEnum):
    INTEGER = 0x02
    BIT_STRING = 0x03
    OCTET_STRING = 0x04
    NULL = 0x05
    OBJECT_IDENTIFIER = 0x06
    SEQUENCE = 0x30
    SET = 0x31


ASN1Node = namedtuple('ASN1Node', ['tag', 'length', 'value', 'size'])
"""一个TLV：标签字节、内容长度、内容（源数据的memoryview）、整个TLV占用的字节数"""


def _as_view(data: Union[Octets, str]) -> memoryview:
    if isinstance(data, str):
        data = hex_to_bytes(data)
    return data if isinstance(data, memoryview) else memoryview(data)


def encode_length(length: int) -> bytes:
    """DER长度编码：小于128时用短格式（1字节），否则用长格式（0x80 | 长度字节数，随后是大端的长度值）"""
    if length < 0:
        raise ValidationError(f'长度不能为负数/Length must not be negative: {length}')
    if length < 0x80:
        return bytes([length])
    byte_count = (length.bit_length() + 7) // 8
    if byte_count > MAX_LENGTH_OCTETS:
        raise EncodingError(f'长度{length}超出支持范围/Length {length} is too large')
    return bytes([0x80 | byte_count]) + length.to_bytes(byte_count, byteorder='big', signed=False)


def decode_length(data: Octets, offset: int = 0) -> Tuple[int, int]:
    """DER长度解码

    :return: (长度值, 长度字段占用的字节数)
    """
    if offset >= len(data):
        raise EncodingError('长度字段越界/Length octets out of bounds')
    first = data[offset]
    if first < 0x80:
        return first, 1

    num_bytes = first & 0x7f
    if num_bytes == 0 or num_bytes > MAX_LENGTH_OCTETS:
        raise EncodingError(f'不支持的长度格式/Invalid or unsupported long form length: 0x{first:02x}')
    if offset + 1 + num_bytes > len(data):
        raise EncodingError('长度字段被截断/Length octets out of bounds')
    length = int.from_bytes(data[offset + 1:offset + 1 + num_bytes], byteorder='big', signed=False)
    return length, 1 + num_bytes


def decode_tlv(data: Union[Octets, str], offset: int = 0, expected_tag: Optional[int] = None) -> ASN1Node:
    """从offset处解码一个TLV，内容为源数据的视图"""
    view = _as_view(data)
    if offset >= len(view):
        raise EncodingError('数据被截断，缺少标签/Data truncated, tag expected')
    tag = view[offset]
    if expected_tag is not None and tag != expected_tag:
        raise EncodingError(f'标签错误，应当为0x{expected_tag:02x}，实际为0x{tag:02x}'
                            f'/Expected tag 0x{expected_tag:02x}, got 0x{tag:02x}')
    length, length_bytes = decode_length(view, offset + 1)
    start = offset + 1 + length_bytes
    end = start + length
    if end > len(view):
        raise EncodingError('内容越界/Content out of bounds')
    return ASN1Node(tag, length, view[start:end], 1 + length_bytes + length)


def _strip_integer_octets(octets: Octets) -> memoryview:
    """去除多余的前导0，至少保留1字节"""
    view = _as_view(octets)
    start = 0
    while start < len(view) - 1 and view[start] == 0:
        start += 1
    return view[start:]


def encode_integer(value: Union[int, Octets, str]) -> bytes:
    """DER INTEGER编码（非负整数）

    值可以是int、大端字节串或HEX字符串；去除多余的前导0，最高位为1时补一个0x00，0编码为02 01 00。
    """
    if isinstance(value, int):
        if value < 0:
            raise ValidationError(f'只支持非负整数/Only non-negative integers are supported: {value}')
        content = value.to_bytes(max(1, (value.bit_length() + 7) // 8), byteorder='big', signed=False)
    else:
        stripped = _strip_integer_octets(value)
        content = bytes(stripped) if len(stripped) > 0 else b'\x00'
    if content[0] & 0x80:
        content = b'\x00' + content

    buffer = bytearray()
    buffer.append(ASN1Tag.INTEGER)
    buffer.extend(encode_length(len(content)))
    buffer.extend(content)
    return bytes(buffer)


def decode_integer(data: Union[Octets, str], offset: int = 0) -> Tuple[memoryview, int]:
    """DER INTEGER解码

    长度大于1且首字节为0x00时去掉这一个补位字节。
    :return: (数值的大端字节串视图, 整个TLV占用的字节数)
    """
    node = decode_tlv(data, offset, ASN1Tag.INTEGER)
    if node.length == 0:
        raise EncodingError('INTEGER内容不能为空/INTEGER with empty content')
    value = node.value
    if len(value) > 1 and value[0] == 0x00:
        value = value[1:]
    return value, node.size


def encode_sequence(*elements: Octets) -> bytes:
    """DER SEQUENCE编码，elements为已编码的TLV"""
    content_length = sum(len(el) for el in elements)
    buffer = bytearray()
    buffer.append(ASN1Tag.SEQUENCE)
    buffer.extend(encode_length(content_length))
    for el in elements:
        buffer.extend(el)
    return bytes(buffer)


def decode_sequence(data: Union[Octets, str], offset: int = 0) -> Tuple[List[memoryview], int]:
    """DER SEQUENCE解码

    :return: (各元素完整TLV的视图列表, 整个SEQUENCE占用的字节数)
    """
    node = decode_tlv(data, offset, ASN1Tag.SEQUENCE)
    content = node.value
    elements = []
    pos = 0
    while pos < len(content):
        element = decode_tlv(content, pos)
        elements.append(content[pos:pos + element.size])
        pos += element.size
    return elements, node.size


def _signature_component(r: Union[int, Octets, str]) -> Union[int, Octets]:
    if isinstance(r, str):
        return hex_to_bytes(r)
    return r


def encode_signature(r: Union[int, Octets, str], s: Union[int, Octets, str]) -> bytes:
    """SM2签名(r, s)编码为DER：SEQUENCE { INTEGER r, INTEGER s }"""
    return encode_sequence(encode_integer(_signature_component(r)), encode_integer(_signature_component(s)))


def decode_signature(signature: Union[Octets, str]) -> Tuple[int, int]:
    """DER格式的SM2签名解码，签名之后不允许有多余数据

    :return: (r, s)
    """
    view = _as_view(signature)
    elements, size = decode_sequence(view)
    if size != len(view):
        raise EncodingError('签名数据之后有多余字节/Trailing bytes after signature')
    if len(elements) != 2:
        raise EncodingError(f'签名应当包含2个INTEGER，实际为{len(elements)}个'
                            f'/Invalid signature: expected 2 elements (r, s), got {len(elements)}')
    values = []
    for element in elements:
        node = decode_tlv(element, 0, ASN1Tag.INTEGER)
        if node.length > 0 and node.value[0] & 0x80:
            raise EncodingError('签名分量不能为负数/Signature component is negative')
        value, _ = decode_integer(element)
        values.append(int.from_bytes(value, byteorder='big', signed=False))
    return values[0], values[1]


def raw_to_der(raw_signature: Union[Octets, str]) -> bytes:
    """r || s格式（64字节或128个HEX字符）的签名转换为DER格式"""
    if isinstance(raw_signature, str):
        if len(raw_signature) != 2 * RAW_SIGNATURE_BYTE_LEN:
            raise ValidationError(f'签名HEX字符串长度必须为{2 * RAW_SIGNATURE_BYTE_LEN}'
                                  f'/Raw signature string must be {2 * RAW_SIGNATURE_BYTE_LEN} hex chars')
        raw_signature = hex_to_bytes(raw_signature)
    if len(raw_signature) != RAW_SIGNATURE_BYTE_LEN:
        raise ValidationError(f'签名长度必须为{RAW_SIGNATURE_BYTE_LEN}字节'
                              f'/Raw signature must be {RAW_SIGNATURE_BYTE_LEN} bytes, got {len(raw_signature)}')
    view = _as_view(raw_signature)
    return encode_signature(view[0:SM2_COMPONENT_BYTE_LEN], view[SM2_COMPONENT_BYTE_LEN:])


def der_to_raw(der_signature: Union[Octets, str]) -> bytes:
    """DER格式的签名转换为r || s格式，r和s各补足32字节"""
    r, s = decode_signature(der_signature)
    limit = 1 << (8 * SM2_COMPONENT_BYTE_LEN)
    if r >= limit or s >= limit:
        raise EncodingError('签名分量超过32字节/Signature component exceeds 32 bytes')
    return (r.to_bytes(SM2_COMPONENT_BYTE_LEN, byteorder='big', signed=False)
            + s.to_bytes(SM2_COMPONENT_BYTE_LEN, byteorder='big', signed=False))


def _tag_name(tag: int) -> str:
    try:
        return ASN1Tag(tag).name
    except ValueError:
        return f'TAG_0x{tag:02X}'


def _to_elements(view: memoryview) -> List[ET.Element]:
    elements = []
    pos = 0
    while pos < len(view):
        node = decode_tlv(view, pos)
        element = ET.Element(_tag_name(node.tag))
        if node.tag & 0x20:  # 结构类型，递归展开
            element.extend(_to_elements(node.value))
        elif node.tag != ASN1Tag.NULL:
            ET.SubElement(element, 'value').text = bytes(node.value).hex()
        elements.append(element)
        pos += node.size
    return elements


def asn1_to_xml(data: Union[Octets, str]) -> str:
    """把DER数据显示为XML，用于调试"""
    lines = []
    for element in _to_elements(_as_view(data)):
        ET.indent(element, space='  ')
        lines.append(ET.tostring(element, encoding='unicode'))
    return '\n'.join(lines)


def signature_to_xml(signature: Union[Octets, str], is_der: Optional[bool] = None) -> str:
    """把SM2签名（DER或r || s格式）显示为XML，用于调试

    :param is_der: 是否为DER格式；缺省时按长度判断，64字节（128个HEX字符）视为r || s格式
    """
    octets = hex_to_bytes(signature) if isinstance(signature, str) else bytes(signature)
    if is_der is None:
        is_der = len(octets) != RAW_SIGNATURE_BYTE_LEN
    der = octets if is_der else raw_to_der(octets)

    decode_signature(der)
    elements, _ = decode_sequence(der)
    r_view, _ = decode_integer(elements[0])
    s_view, _ = decode_integer(elements[1])

    root = ET.Element('SM2Signature')
    ET.SubElement(root, 'r').text = bytes(r_view).hex()
    ET.SubElement(root, 's').text = bytes(s_view).hex()
    ET.SubElement(root, 'DER').extend(_to_elements(memoryview(der)))
    ET.indent(root, space='  ')
    return '<?xml version="1.0" encoding="UTF-8"?>\n' + ET.tostring(root, encoding='unicode')
