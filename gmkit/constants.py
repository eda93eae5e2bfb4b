"""各算法的模式选择项

公开接口既接受枚举值，也接受不区分大小写的名称字符串，未知名称一律抛出ValidationError，不使用缺省值代替。
"""
from enum import Enum
from typing import Type, TypeVar, Union

from .commons import ValidationError

E = TypeVar('E', bound=Enum)


class CipherMode(Enum):
    """分组密码工作模式"""
    ECB = 'ECB'
    CBC = 'CBC'
    CTR = 'CTR'
    CFB = 'CFB'
    OFB = 'OFB'
    GCM = 'GCM'

    @property
    def stream_like(self) -> bool:
        """是否为无需填充的序列密码式工作模式"""
        return self in (CipherMode.CTR, CipherMode.CFB, CipherMode.OFB, CipherMode.GCM)

    @property
    def requires_iv(self) -> bool:
        return self is not CipherMode.ECB


class PaddingMode(Enum):
    """填充方式"""
    PKCS7 = 'PKCS7'
    NONE = 'NONE'


class SM2CipherMode(Enum):
    """SM2密文各部分的排列顺序，GB/T 32918.4-2016规定为C1C3C2，C1C2C3为早期的非标格式"""
    C1C3C2 = 'C1C3C2'
    C1C2C3 = 'C1C2C3'


class SignatureFormat(Enum):
    """SM2签名的表示格式：r和s直接拼接的64字节，或者ASN.1 DER编码的SEQUENCE"""
    RAW = 'RAW'
    DER = 'DER'


def parse_option(enum_type: Type[E], value: Union[E, str, None]) -> E:
    """将枚举值或名称字符串转换为枚举值"""
    if isinstance(value, enum_type):
        return value
    if value is None and enum_type is PaddingMode:
        return PaddingMode.NONE
    if isinstance(value, str):
        try:
            return enum_type[value.strip().upper()]
        except KeyError:
            pass
    choices = '/'.join(member.name for member in enum_type)
    raise ValidationError(f'未知的{enum_type.__name__}选项/Unknown {enum_type.__name__}: {value!r} '
                          f'(expected {choices})')
