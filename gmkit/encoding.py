"""字节串与HEX、Base64、UTF-8文本之间的转换

对外接口中的二进制数据（密钥、IV、签名等）约定使用小写HEX字符串，文本数据默认使用UTF-8编码。
"""
from typing import Union
import base64
import binascii
import string

from .commons import ValidationError

Octets = Union[bytes, bytearray, memoryview]

_HEX_DIGITS = frozenset(string.hexdigits)


def hex_to_bytes(hex_str: str) -> bytes:
    """HEX字符串转换为字节串，允许大写和空白字符，拒绝奇数长度和非HEX字符"""
    if not isinstance(hex_str, str):
        raise ValidationError(f'HEX数据必须是字符串/Hex data should be str, not {type(hex_str).__name__}')
    compact = ''.join(hex_str.split())
    if len(compact) % 2 != 0:
        raise ValidationError(f'HEX字符串长度必须为偶数/Hex string has odd length {len(compact)}')
    if not _HEX_DIGITS.issuperset(compact):
        raise ValidationError('HEX字符串包含非法字符/Hex string contains non-hex characters')
    return bytes.fromhex(compact)


def bytes_to_hex(octets: Octets) -> str:
    """字节串转换为小写HEX字符串"""
    return bytes(octets).hex()


def base64_encode(octets: Octets) -> str:
    return base64.b64encode(bytes(octets)).decode('ascii')


def base64_decode(text: Union[str, bytes]) -> bytes:
    try:
        return base64.b64decode(text, validate=True)
    except (binascii.Error, ValueError) as e:
        raise ValidationError(f'Base64数据格式错误/Malformed base64 data: {e}') from e


def utf8_encode(text: str) -> bytes:
    return text.encode('utf-8')


def utf8_decode(octets: Octets) -> str:
    try:
        return bytes(octets).decode('utf-8')
    except UnicodeDecodeError as e:
        raise ValidationError(f'数据不是合法的UTF-8编码/Data is not valid UTF-8: {e}') from e


def to_octets(data: Union[str, bytes, bytearray, memoryview], name: str = 'data') -> bytes:
    """将密钥、IV、签名等二进制参数统一为bytes，字符串按HEX解析"""
    if isinstance(data, str):
        return hex_to_bytes(data)
    if isinstance(data, (bytes, bytearray, memoryview)):
        return bytes(data)
    raise ValidationError(f'{name}必须是字节串或HEX字符串/{name} should be bytes or hex str')


def to_message(data: Union[str, bytes, bytearray, memoryview], name: str = 'message') -> bytes:
    """将待处理的消息统一为bytes，字符串按UTF-8编码"""
    if isinstance(data, str):
        return utf8_encode(data)
    if isinstance(data, (bytes, bytearray, memoryview)):
        return bytes(data)
    raise ValidationError(f'{name}必须是字节串或字符串/{name} should be bytes or str')


def check_length(data: Octets, length: int, name: str):
    if len(data) != length:
        raise ValidationError(f'{name}长度必须为{length}字节/{name} should be {length} bytes, got {len(data)}')
