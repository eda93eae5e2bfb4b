"""SM2椭圆曲线公钥密码算法，GB/T 32918-2016

点运算采用Jacobian加重射影坐标，尽量减少求逆运算并缓存中间值。
"""
from dataclasses import dataclass
from typing import Optional, List, Union
import hmac as _hmac
import logging

from .asn1 import encode_signature, decode_signature
from .calculation import (add_mod_prime, adds_mod_prime, minus_mod_prime, mul_mod_prime, muls_mod_prime,
                          pow_mod_prime, inverse_mod_prime, square_root_mod_prime)
from .commons import CryptoError, ValidationError, AuthenticationFailure
from .constants import SM2CipherMode, SignatureFormat, parse_option
from .encoding import hex_to_bytes, to_octets, to_message
from .rng import RandomSource, random_scalar
from .sm3 import sm3_hash, sm3_kdf, SM3_OUTPUT_BYTE_LENGTH

logger = logging.getLogger(__name__)

SM2_ECLIPSE_CURVE = {
    'n': 'FFFFFFFEFFFFFFFFFFFFFFFFFFFFFFFF7203DF6B21C6052B53BBF40939D54123',
    'p': 'FFFFFFFEFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFF00000000FFFFFFFFFFFFFFFF',
    'x': '32c4ae2c1f1981195f9904466a39c9948fe30bbff2660be1715a4589334c74c7',
    'y': 'bc3736a2f4f6779c59bdcee36b692153d0a9877cc62a474002df32e52139f0a0',
    'a': 'FFFFFFFEFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFF00000000FFFFFFFFFFFFFFFC',
    'b': '28E9FA9E9D9F5E344D5A9E4BCF6509A7F39789F515AB8F92DDBCBD414D940E93'
}
"""GB/T 32918.5-2017 推荐曲线参数"""

SM2_P = int(SM2_ECLIPSE_CURVE['p'], base=16)
SM2_N = int(SM2_ECLIPSE_CURVE['n'], base=16)
SM2_A = int(SM2_ECLIPSE_CURVE['a'], base=16)
SM2_B = int(SM2_ECLIPSE_CURVE['b'], base=16)
SM2_X = int(SM2_ECLIPSE_CURVE['x'], base=16)
SM2_Y = int(SM2_ECLIPSE_CURVE['y'], base=16)
SM2_P_BYTE_LEN = SM2_P.bit_length() // 8

SM2_SIGN_RETRY_LIMIT = 64
"""签名时随机数k导致r或s退化后重新选取k的最大次数"""

DEFAULT_USER_ID = '1234567812345678'.encode()
"""用户身份ID的默认值为0x1234567812345678（GM/T 0009-2023 7 用户身份标识ID的默认值）"""

MAX_USER_ID_BYTE_LEN = 0xffff // 8
"""ENTL为2字节的比特长度，ID最多8191字节"""


def p_add(a: int, b: int) -> int:
    return add_mod_prime(SM2_P, a, b)


def p_adds(*args):
    return adds_mod_prime(SM2_P, *args)


def p_minus(a: int, b: int) -> int:
    return minus_mod_prime(SM2_P, a, b)


def p_mul(a: int, b: int) -> int:
    return mul_mod_prime(SM2_P, a, b)


def p_muls(*args):
    return muls_mod_prime(SM2_P, *args)


def p_pow(n: int, k: int) -> int:
    return pow_mod_prime(SM2_P, n, k)


def p_inv(n: int) -> int:
    return inverse_mod_prime(SM2_P, n)


def _i2b(n: int) -> bytes:
    """将整数值转化为长度为ECC的字节串，用于点坐标的转换"""
    return int.to_bytes(n, length=SM2_P_BYTE_LEN, byteorder='big')


def _i2h(n: int) -> str:
    return _i2b(n).hex()


class _PointCache:
    """点运算中间值的缓存，按需计算"""

    def __init__(self, x: int, y: int, z: int):
        self.x = x
        self.y = y
        self.z = z
        # pow_x_2, pow_x_3, pow_y_2, pow_y_4, inv_z_1, inv_z_2, inv_z_3, pow_z_2, pow_z_3, pow_z_4, pow_z_6
        self._cache: List[Optional[int]] = [None] * 11

    @property
    def pow_x_2(self):
        if self._cache[0] is None:
            self._cache[0] = p_mul(self.x, self.x)
        return self._cache[0]

    @property
    def pow_x_3(self):
        if self._cache[1] is None:
            self._cache[1] = p_mul(self.pow_x_2, self.x)
        return self._cache[1]

    @property
    def pow_y_2(self):
        if self._cache[2] is None:
            self._cache[2] = p_mul(self.y, self.y)
        return self._cache[2]

    @property
    def pow_y_4(self):
        if self._cache[3] is None:
            self._cache[3] = p_mul(self.pow_y_2, self.pow_y_2)
        return self._cache[3]

    @property
    def inv_z_1(self):
        if self._cache[4] is None:
            self._cache[4] = p_inv(self.z)
        return self._cache[4]

    @property
    def inv_z_2(self):
        if self._cache[5] is None:
            self._cache[5] = p_mul(self.inv_z_1, self.inv_z_1)
        return self._cache[5]

    @property
    def inv_z_3(self):
        if self._cache[6] is None:
            self._cache[6] = p_mul(self.inv_z_2, self.inv_z_1)
        return self._cache[6]

    @property
    def pow_z_2(self):
        if self._cache[7] is None:
            self._cache[7] = p_mul(self.z, self.z)
        return self._cache[7]

    @property
    def pow_z_3(self):
        if self._cache[8] is None:
            self._cache[8] = p_mul(self.pow_z_2, self.z)
        return self._cache[8]

    @property
    def pow_z_4(self):
        if self._cache[9] is None:
            self._cache[9] = p_mul(self.pow_z_2, self.pow_z_2)
        return self._cache[9]

    @property
    def pow_z_6(self):
        if self._cache[10] is None:
            self._cache[10] = p_mul(self.pow_z_3, self.pow_z_3)
        return self._cache[10]


class SM2Point:
    """SM2椭圆曲线上的点，Jacobian坐标(X, Y, Z)对应仿射坐标(X/Z^2, Y/Z^3)，Z为0时表示无穷远点O"""

    def __init__(self, x: int, y: int, z: int = 1):
        if not (0 <= x < SM2_P and 0 <= y < SM2_P and 0 <= z < SM2_P):
            raise CryptoError('点坐标超出范围/Point coordinates out of range')
        self._set(x, y, z)
        if not self.on_curve():
            raise CryptoError(f'点({_i2h(x)}, {_i2h(y)})不在SM2椭圆曲线上/Point is not on the SM2 curve')

    def _set(self, x: int, y: int, z: int):
        self._x = x
        self._y = y
        self._z = z
        self._cache = _PointCache(x, y, z)
        self._norm_x = None
        self._norm_y = None

    @classmethod
    def _trusted(cls, x: int, y: int, z: int) -> 'SM2Point':
        """点运算的结果必然在曲线上，不再检验"""
        point = cls.__new__(cls)
        point._set(x, y, z)
        return point

    @classmethod
    def infinity(cls) -> 'SM2Point':
        return cls._trusted(1, 1, 0)

    @property
    def infinite(self) -> bool:
        return self._z == 0

    @property
    def x(self) -> Optional[int]:
        if self._z == 0:
            return None
        elif self._norm_x is None:
            self._norm_x = self._x if self._z == 1 else p_mul(self._x, self._cache.inv_z_2)
        return self._norm_x

    @property
    def y(self) -> Optional[int]:
        if self._z == 0:
            return None
        elif self._norm_y is None:
            self._norm_y = self._y if self._z == 1 else p_mul(self._y, self._cache.inv_z_3)
        return self._norm_y

    @property
    def x_octets(self) -> Optional[bytes]:
        return None if self.x is None else _i2b(self.x)

    @property
    def y_octets(self) -> Optional[bytes]:
        return None if self.y is None else _i2b(self.y)

    def normalize(self) -> 'SM2Point':
        if self._z == 0:
            return SM2Point.infinity()
        return SM2Point._trusted(self.x, self.y, 1)

    def on_curve(self) -> bool:
        """y^2 = x^3 + a * x * z^4 + b * z^6"""
        if self._z == 0:
            return True
        left = self._cache.pow_y_2
        if self._z == 1:
            right = p_adds(self._cache.pow_x_3, p_mul(SM2_A, self._x), SM2_B)
        else:
            right = p_adds(self._cache.pow_x_3,
                           p_muls(SM2_A, self._x, self._cache.pow_z_4),
                           p_mul(SM2_B, self._cache.pow_z_6))
        return left == right

    @staticmethod
    def check_same_or_reverse_point(p1: 'SM2Point', p2: 'SM2Point') -> int:
        """检验不为无穷远的两个点的关系：相同为1，互逆为-1，其它为0"""
        lx = p_mul(p1._x, p2._cache.pow_z_2)
        rx = p_mul(p2._x, p1._cache.pow_z_2)
        if lx != rx:
            return 0
        ly = p_mul(p1._y, p2._cache.pow_z_3)
        ry = p_mul(p2._y, p1._cache.pow_z_3)
        if ly == ry:
            return 1
        elif p_add(ly, ry) == 0:
            return -1
        else:
            raise CryptoError('相同X的两点Y不相同也不相反/Points share x but neither equal nor opposite')

    def __eq__(self, other) -> bool:
        if not isinstance(other, SM2Point):
            return NotImplemented
        if self.infinite or other.infinite:
            return self.infinite and other.infinite
        return SM2Point.check_same_or_reverse_point(self, other) == 1

    def __hash__(self):
        return hash((self.x, self.y))

    def __repr__(self):
        if self.infinite:
            return '(INFINITE POINT)'
        return f'Point(x={self.x_octets.hex()}, y={self.y_octets.hex()})'

    @staticmethod
    def point_double(p: 'SM2Point') -> 'SM2Point':
        """倍点：l1 = 3x^2 + az^4, l2 = 4xy^2, l3 = 8y^4, x3 = l1^2 - 2l2, y3 = l1(l2 - x3) - l3, z3 = 2yz"""
        if p.infinite or p._y == 0:
            return SM2Point.infinity()
        l1 = p_add(p_mul(3, p._cache.pow_x_2), p_mul(SM2_A, p._cache.pow_z_4))
        l2 = p_muls(4, p._x, p._cache.pow_y_2)
        l3 = p_mul(8, p._cache.pow_y_4)

        x3 = p_minus(p_mul(l1, l1), p_mul(2, l2))
        y3 = p_minus(p_mul(l1, p_minus(l2, x3)), l3)
        z3 = p_muls(2, p._y, p._z)
        return SM2Point._trusted(x3, y3, z3)

    @staticmethod
    def point_add(p1: 'SM2Point', p2: 'SM2Point') -> 'SM2Point':
        if p1.infinite:
            return p2
        if p2.infinite:
            return p1

        sr = SM2Point.check_same_or_reverse_point(p1, p2)
        if sr == -1:
            return SM2Point.infinity()
        if sr == 1:
            return SM2Point.point_double(p1)

        l1 = p_mul(p1._x, p2._cache.pow_z_2)
        l2 = p_mul(p2._x, p1._cache.pow_z_2)
        l3 = p_minus(l1, l2)
        l4 = p_mul(p1._y, p2._cache.pow_z_3)
        l5 = p_mul(p2._y, p1._cache.pow_z_3)
        l6 = p_minus(l4, l5)
        l7 = p_add(l1, l2)

        l3_2 = p_mul(l3, l3)
        l3_3 = p_mul(l3_2, l3)

        x3 = p_minus(p_mul(l6, l6), p_mul(l7, l3_2))
        y3 = p_minus(p_mul(l6, p_minus(p_mul(l1, l3_2), x3)), p_mul(l4, l3_3))
        z3 = p_muls(p1._z, p2._z, l3)
        return SM2Point._trusted(x3, y3, z3)

    def __add__(self, other: 'SM2Point') -> 'SM2Point':
        return SM2Point.point_add(self, other)

    def __neg__(self) -> 'SM2Point':
        if self.infinite:
            return self
        return SM2Point._trusted(self._x, p_minus(0, self._y), self._z)

    def __mul__(self, k: int) -> 'SM2Point':
        """SM2点的整数倍，从高位到低位的二进制倍点-加法"""
        k %= SM2_N
        res = SM2Point.infinity()
        if k == 0 or self.infinite:
            return res
        base = self.normalize()
        for bit in bin(k)[2:]:
            res = SM2Point.point_double(res)
            if bit == '1':
                res = SM2Point.point_add(res, base)
        return res

    def __rmul__(self, k: int) -> 'SM2Point':
        return self.__mul__(k)

    def to_bytes(self, compressed: bool = False) -> bytes:
        """SM2点的字节串表示

        GB/T 32918.1-2016 4.2.9 c) 非压缩表示04 || x || y，压缩表示02/03 || x
        """
        if self.infinite:
            raise CryptoError('无穷远点没有字节串表示/The point at infinity cannot be encoded')
        buffer = bytearray()
        if compressed:
            buffer.append(0x02 | (self.y & 0x01))
            buffer.extend(self.x_octets)
        else:
            buffer.append(0x04)
            buffer.extend(self.x_octets)
            buffer.extend(self.y_octets)
        return bytes(buffer)

    @staticmethod
    def calc_y(x: int) -> int:
        """通过x计算SM2曲线上对应的其中一个y值，GB/T 32918.1-2016 A.5.2"""
        pow_y_2 = p_adds(p_pow(x, 3), p_mul(SM2_A, x), SM2_B)
        y = square_root_mod_prime(SM2_P, pow_y_2)
        if y is None:
            raise CryptoError(f'x={_i2h(x)}在SM2曲线上没有对应的点/No curve point has this x coordinate')
        return y

    @staticmethod
    def from_bytes(octets: Union[bytes, bytearray, memoryview]) -> 'SM2Point':
        """从字节串表示中恢复SM2点，GB/T 32918.1-2016 4.2.10"""
        if len(octets) == 0:
            raise ValidationError('SM2点的字节串表示为空/Empty point encoding')
        pc = octets[0]
        if pc == 0x04:
            if len(octets) != 2 * SM2_P_BYTE_LEN + 1:
                raise ValidationError(f'SM2点未压缩格式长度{len(octets)}不符合标准，应当为{2 * SM2_P_BYTE_LEN + 1}'
                                      f'/Uncompressed point must be {2 * SM2_P_BYTE_LEN + 1} bytes')
            x = int.from_bytes(octets[1:SM2_P_BYTE_LEN + 1], byteorder='big', signed=False)
            y = int.from_bytes(octets[SM2_P_BYTE_LEN + 1:], byteorder='big', signed=False)
            return SM2Point(x, y)
        elif pc == 0x02 or pc == 0x03:
            if len(octets) != SM2_P_BYTE_LEN + 1:
                raise ValidationError(f'SM2点压缩格式长度{len(octets)}不符合标准，应当为{SM2_P_BYTE_LEN + 1}'
                                      f'/Compressed point must be {SM2_P_BYTE_LEN + 1} bytes')
            x = int.from_bytes(octets[1:], byteorder='big', signed=False)
            if x >= SM2_P:
                raise CryptoError('点坐标超出范围/Point coordinates out of range')
            y = SM2Point.calc_y(x)
            if y & 0x01 != pc & 0x01:
                y = SM2_P - y
            return SM2Point(x, y)
        else:
            raise ValidationError(f'SM2点的字节串表示PC值错误（{pc:02x}）/Unsupported point encoding prefix')


SM2_POINT_G = SM2Point(SM2_X, SM2_Y, 1)
"""SM2椭圆曲线的基点G"""


def _build_g_table() -> List[SM2Point]:
    table = []
    exp_p = SM2_POINT_G
    for _ in range(SM2_P_BYTE_LEN * 8):
        table.append(exp_p)
        exp_p = SM2Point.point_double(exp_p).normalize()
    return table


_G_POW_TWO_EXP: List[SM2Point] = _build_g_table()
"""[2^i]G，i = 0..255，导入时一次性生成，之后只读"""


def _multiply_g(k: int) -> SM2Point:
    """[k]G，使用预先计算的[2^i]G加速计算"""
    k %= SM2_N
    res = SM2Point.infinity()
    r = 0
    while k:
        if k & 0x01:
            res = SM2Point.point_add(res, _G_POW_TWO_EXP[r])
        k >>= 1
        r += 1
    return res


def _as_user_id(uid: Union[bytes, bytearray, memoryview, str]) -> bytes:
    uid = uid.encode('utf-8') if isinstance(uid, str) else bytes(uid)
    if len(uid) > MAX_USER_ID_BYTE_LEN:
        raise ValidationError(f'用户ID长度超出限制{MAX_USER_ID_BYTE_LEN}字节'
                              f'/User ID longer than {MAX_USER_ID_BYTE_LEN} bytes')
    return uid


def generate_z(point: SM2Point, uid: Union[bytes, bytearray, memoryview, str] = DEFAULT_USER_ID) -> bytes:
    """SM2预处理：根据用户身份ID和公钥计算Z值

    GB/T 32918.2-2016 5.5
    Z = SM3(ENTL || ID || a || b || xG || yG || xA || yA)
    :param point: 公钥SM2点
    :param uid: 用户身份ID，字符串按UTF-8编码，长度不超过8191字节
    :return: 32字节的Z值
    """
    uid = _as_user_id(uid)
    entl = (len(uid) * 8).to_bytes(2, byteorder='big')
    buffer = bytearray()
    buffer.extend(entl)
    buffer.extend(uid)
    buffer.extend(_i2b(SM2_A))
    buffer.extend(_i2b(SM2_B))
    buffer.extend(_i2b(SM2_X))
    buffer.extend(_i2b(SM2_Y))
    buffer.extend(point.x_octets)
    buffer.extend(point.y_octets)
    logger.debug('预处理输入: %s', buffer.hex())
    return sm3_hash(buffer)


def _message_hash(point: SM2Point, uid, message: bytes) -> int:
    buffer = bytearray(generate_z(point, uid))
    buffer.extend(message)
    return int.from_bytes(sm3_hash(buffer), byteorder='big', signed=False)


def _is_all_zero(octets: bytes) -> bool:
    return not any(octets)


class SM2PublicKey:
    def __init__(self, point: SM2Point):
        if point.infinite:
            raise CryptoError('公钥不能是无穷远点/Public key cannot be the point at infinity')
        self._point = point.normalize()

    @property
    def point(self) -> SM2Point:
        return self._point

    def __eq__(self, other) -> bool:
        if not isinstance(other, SM2PublicKey):
            return NotImplemented
        return self._point == other._point

    def __hash__(self):
        return hash(self._point)

    def __repr__(self):
        return '({},{})'.format(self._point.x_octets.hex().upper(), self._point.y_octets.hex().upper())

    @property
    def octets(self) -> bytes:
        return self._point.to_bytes()

    def to_bytes(self, compressed: bool = False) -> bytes:
        return self._point.to_bytes(compressed)

    def to_hex(self, compressed: bool = False) -> str:
        return self.to_bytes(compressed).hex()

    @staticmethod
    def from_bytes(octets: Union[bytes, bytearray, memoryview]) -> 'SM2PublicKey':
        return SM2PublicKey(SM2Point.from_bytes(octets))

    @staticmethod
    def from_hex(hex_str: str) -> 'SM2PublicKey':
        """从HEX字符串恢复公钥，支持04开头的非压缩格式和02/03开头的压缩格式"""
        return SM2PublicKey.from_bytes(hex_to_bytes(hex_str))

    @staticmethod
    def from_coordinates(x: Union[int, bytes], y: Union[int, bytes]) -> 'SM2PublicKey':
        if not isinstance(x, int):
            x = int.from_bytes(x, byteorder='big', signed=False)
        if not isinstance(y, int):
            y = int.from_bytes(y, byteorder='big', signed=False)
        return SM2PublicKey(SM2Point(x, y))

    def generate_z(self, uid: Union[bytes, str] = DEFAULT_USER_ID) -> bytes:
        """根据本公钥计算Z值"""
        return generate_z(self._point, uid)

    def verify(self, message: Union[bytes, bytearray, memoryview, str], signature: Union[bytes, bytearray, str],
               uid: Union[bytes, str] = DEFAULT_USER_ID,
               signature_format: Union[SignatureFormat, str] = SignatureFormat.RAW) -> bool:
        """SM2公钥验签

        GB/T 32918.2-2016 7 (P4)
        签名格式错误（长度不对、DER无法解析）时抛出异常；签名与消息不符时返回False。
        :param message: 待验签消息，字符串按UTF-8编码
        :param signature: 签名数据，RAW格式为r和s直接拼接的64字节，DER格式为ASN.1 SEQUENCE；字符串按HEX解析
        :param uid: 用户ID
        :param signature_format: 签名格式
        :return: 验签结果
        """
        signature_format = parse_option(SignatureFormat, signature_format)
        signature = to_octets(signature, 'signature')
        if signature_format is SignatureFormat.DER:
            r, s = decode_signature(signature)
        else:
            if len(signature) != 2 * SM2_P_BYTE_LEN:
                raise ValidationError(f'签名数据长度错误（{len(signature)}），请检查是否包含了额外的数据头或其他格式'
                                      f'/Raw signature must be {2 * SM2_P_BYTE_LEN} bytes')
            r = int.from_bytes(signature[0:SM2_P_BYTE_LEN], byteorder='big')
            s = int.from_bytes(signature[SM2_P_BYTE_LEN:], byteorder='big')
        logger.debug('r=%064x', r)
        logger.debug('s=%064x', s)

        if not (1 <= r < SM2_N and 1 <= s < SM2_N):
            return False
        e = _message_hash(self._point, uid, to_message(message))
        t = (r + s) % SM2_N
        if t == 0:
            return False

        pr = _multiply_g(s) + self._point * t  # [s]G + [t]P == [k]G
        logger.debug('[k]G=%s', pr)
        if pr.infinite:
            return False
        vr = (e + pr.x) % SM2_N
        logger.debug('R=%064x', vr)
        return vr == r

    def encrypt(self, message: Union[bytes, bytearray, memoryview, str],
                mode: Union[SM2CipherMode, str] = SM2CipherMode.C1C3C2,
                random_source: Optional[RandomSource] = None) -> bytes:
        """SM2公钥加密

        GB/T 32918.4-2016 6 (P4)
        :param message: 待加密消息，字符串按UTF-8编码
        :param mode: GB/T 32918.4-2016规定的是C1C3C2格式，有些历史遗留的非标情况是C1C2C3格式
        :param random_source: 随机数来源
        :return: 密文，C1为04开头的非压缩点
        """
        mode = parse_option(SM2CipherMode, mode)
        message = to_message(message)
        m_len = len(message)

        k = random_scalar(SM2_N, random_source)
        p1 = _multiply_g(k)
        c1 = p1.to_bytes()
        logger.debug('[k]G=%s', p1)

        p2 = self._point * k
        logger.debug('[k]P=%s', p2)
        buffer = bytearray()
        buffer.extend(p2.x_octets)
        buffer.extend(p2.y_octets)
        t = sm3_kdf(buffer, m_len)
        logger.debug('   t=%s', t.hex())
        if m_len > 0 and _is_all_zero(t):
            raise CryptoError('KDF输出全为0/KDF output is all zeros')

        c2 = bytes(t[i] ^ message[i] for i in range(m_len))
        logger.debug('   c=%s', c2.hex())

        buffer.clear()
        buffer.extend(p2.x_octets)
        buffer.extend(message)
        buffer.extend(p2.y_octets)
        c3 = sm3_hash(buffer)
        logger.debug('   h=%s', c3.hex())

        if mode is SM2CipherMode.C1C3C2:
            return c1 + c3 + c2
        return c1 + c2 + c3


class SM2PrivateKey:
    def __init__(self, secret: Optional[int] = None, random_source: Optional[RandomSource] = None):
        """SM2私钥

        :param secret: 私钥整数值d，GB/T 32918.1-2016 6.1 要求d在[1, n-2]范围内；为None时随机生成
        :param random_source: 随机生成私钥时使用的随机数来源
        """
        if secret is None:
            secret = random_scalar(SM2_N - 1, random_source)
        elif not 1 <= secret <= SM2_N - 2:
            raise CryptoError('私钥超出[1, n-2]范围/Private key out of range [1, n-2]')
        self._secret = secret
        self._pub_key = None

    @property
    def value(self) -> int:
        """SM2私钥的整数值（秘密）"""
        return self._secret

    def get_public_key(self) -> SM2PublicKey:
        if self._pub_key is None:
            self._pub_key = SM2PublicKey(_multiply_g(self._secret))
        return self._pub_key

    @property
    def public_key(self) -> SM2PublicKey:
        return self.get_public_key()

    @property
    def point(self) -> SM2Point:
        return self.get_public_key().point

    def to_bytes(self) -> bytes:
        """SM2私钥的字节表示（秘密）"""
        return int.to_bytes(self._secret, length=SM2_P_BYTE_LEN, byteorder='big')

    def to_hex(self) -> str:
        return self.to_bytes().hex()

    @staticmethod
    def from_bytes(octets: Union[bytes, bytearray, memoryview]) -> 'SM2PrivateKey':
        if len(octets) != SM2_P_BYTE_LEN:
            raise ValidationError(f'私钥长度应当为{SM2_P_BYTE_LEN}字节/Private key must be {SM2_P_BYTE_LEN} bytes')
        return SM2PrivateKey(int.from_bytes(octets, byteorder='big', signed=False))

    @staticmethod
    def from_hex(hex_str: str) -> 'SM2PrivateKey':
        return SM2PrivateKey.from_bytes(hex_to_bytes(hex_str))

    def __eq__(self, other) -> bool:
        if not isinstance(other, SM2PrivateKey):
            return NotImplemented
        return _hmac.compare_digest(self.to_bytes(), other.to_bytes())

    def __hash__(self):
        return hash(self.public_key)

    def __repr__(self):
        return f'SM2PrivateKey(public_key={self.public_key!r})'

    def sign(self, message: Union[bytes, bytearray, memoryview, str], uid: Union[bytes, str] = DEFAULT_USER_ID,
             random_source: Optional[RandomSource] = None,
             signature_format: Union[SignatureFormat, str] = SignatureFormat.RAW) -> bytes:
        """SM2私钥签名

        GB/T 32918.2-2016 6 (P3)
        签名使用的哈希算法为SM3
        :param message: 待签名数据，字符串按UTF-8编码
        :param uid: 用户ID，默认值为0x1234567812345678（GM/T 0009-2023 7 用户身份标识ID的默认值）
        :param random_source: 随机数k的来源
        :param signature_format: RAW为r || s共64字节，DER为ASN.1 SEQUENCE
        :return: 签名数据
        """
        signature_format = parse_option(SignatureFormat, signature_format)
        e = _message_hash(self.point, uid, to_message(message))
        inv_d = inverse_mod_prime(SM2_N, 1 + self._secret)

        for _ in range(SM2_SIGN_RETRY_LIMIT):
            k = random_scalar(SM2_N, random_source)
            p = _multiply_g(k)
            logger.debug('[k]G=%s', p)
            r = (e + p.x) % SM2_N
            if r == 0 or r + k == SM2_N:
                continue
            s = (inv_d * (k - r * self._secret)) % SM2_N
            if s == 0:
                continue
            logger.debug('r=%s', _i2h(r))
            logger.debug('s=%s', _i2h(s))
            if signature_format is SignatureFormat.DER:
                return encode_signature(r, s)
            return _i2b(r) + _i2b(s)
        raise CryptoError(f'签名连续{SM2_SIGN_RETRY_LIMIT}次未能得到有效的r和s'
                          f'/Signing failed after {SM2_SIGN_RETRY_LIMIT} nonce attempts')

    def decrypt(self, cipher_text: Union[bytes, bytearray, memoryview, str],
                mode: Union[SM2CipherMode, str] = SM2CipherMode.C1C3C2) -> bytes:
        """SM2私钥解密

        GB/T 32918.4-2016 7 (P4)
        :param cipher_text: 密文，字符串按HEX解析；C1可以是非压缩或压缩格式
        :param mode: 密文排列顺序，须与加密时一致
        :return: 明文
        """
        mode = parse_option(SM2CipherMode, mode)
        cipher_text = to_octets(cipher_text, 'cipher_text')
        if len(cipher_text) == 0:
            raise ValidationError('密文为空/Empty ciphertext')
        c1_len = SM2_P_BYTE_LEN + 1 if cipher_text[0] in (0x02, 0x03) else 2 * SM2_P_BYTE_LEN + 1
        if len(cipher_text) < c1_len + SM3_OUTPUT_BYTE_LENGTH:
            raise ValidationError(f'密文长度{len(cipher_text)}过短/Ciphertext too short')

        c1 = cipher_text[0:c1_len]
        if mode is SM2CipherMode.C1C3C2:
            c3 = cipher_text[c1_len:c1_len + SM3_OUTPUT_BYTE_LENGTH]
            c2 = cipher_text[c1_len + SM3_OUTPUT_BYTE_LENGTH:]
        else:
            c2 = cipher_text[c1_len:len(cipher_text) - SM3_OUTPUT_BYTE_LENGTH]
            c3 = cipher_text[len(cipher_text) - SM3_OUTPUT_BYTE_LENGTH:]

        p1 = SM2Point.from_bytes(c1)
        logger.debug('[k]G=%s', p1)
        p2 = p1 * self._secret
        if p2.infinite:
            raise CryptoError('[d]C1为无穷远点/[d]C1 is the point at infinity')
        logger.debug('[k]P=%s', p2)

        m_len = len(c2)
        buffer = bytearray()
        buffer.extend(p2.x_octets)
        buffer.extend(p2.y_octets)
        t = sm3_kdf(buffer, m_len)
        logger.debug('   t=%s', t.hex())
        if m_len > 0 and _is_all_zero(t):
            raise CryptoError('KDF输出全为0/KDF output is all zeros')
        message = bytes(c2[i] ^ t[i] for i in range(m_len))

        buffer.clear()
        buffer.extend(p2.x_octets)
        buffer.extend(message)
        buffer.extend(p2.y_octets)
        c3r = sm3_hash(buffer)
        logger.debug('h[o]=%s', c3.hex())
        logger.debug('h[r]=%s', c3r.hex())

        if not _hmac.compare_digest(c3, c3r):
            raise AuthenticationFailure('解密错误，C3校验失败/Decryption failed: C3 mismatch')
        return message


@dataclass(frozen=True)
class KeyPair:
    """SM2密钥对"""
    private_key: SM2PrivateKey
    public_key: SM2PublicKey

    @property
    def private_key_hex(self) -> str:
        return self.private_key.to_hex()

    @property
    def public_key_hex(self) -> str:
        return self.public_key.to_hex()


def generate_keypair(random_source: Optional[RandomSource] = None) -> KeyPair:
    """生成SM2密钥对，GB/T 32918.1-2016 6.1"""
    private_key = SM2PrivateKey(random_source=random_source)
    return KeyPair(private_key, private_key.public_key)


def _as_private_key(key: Union[SM2PrivateKey, bytes, str, int]) -> SM2PrivateKey:
    if isinstance(key, SM2PrivateKey):
        return key
    if isinstance(key, int):
        return SM2PrivateKey(key)
    return SM2PrivateKey.from_bytes(to_octets(key, 'private_key'))


def _as_public_key(key: Union[SM2PublicKey, bytes, str]) -> SM2PublicKey:
    if isinstance(key, SM2PublicKey):
        return key
    return SM2PublicKey.from_bytes(to_octets(key, 'public_key'))


def sm2_sign(private_key: Union[SM2PrivateKey, bytes, str, int], message: Union[bytes, str],
             uid: Union[bytes, str] = DEFAULT_USER_ID,
             signature_format: Union[SignatureFormat, str] = SignatureFormat.RAW,
             random_source: Optional[RandomSource] = None) -> bytes:
    return _as_private_key(private_key).sign(message, uid, random_source, signature_format)


def sm2_verify(public_key: Union[SM2PublicKey, bytes, str], message: Union[bytes, str],
               signature: Union[bytes, str], uid: Union[bytes, str] = DEFAULT_USER_ID,
               signature_format: Union[SignatureFormat, str] = SignatureFormat.RAW) -> bool:
    return _as_public_key(public_key).verify(message, signature, uid, signature_format)


def sm2_encrypt(public_key: Union[SM2PublicKey, bytes, str], message: Union[bytes, str],
                mode: Union[SM2CipherMode, str] = SM2CipherMode.C1C3C2,
                random_source: Optional[RandomSource] = None) -> bytes:
    return _as_public_key(public_key).encrypt(message, mode, random_source)


def sm2_decrypt(private_key: Union[SM2PrivateKey, bytes, str, int], cipher_text: Union[bytes, str],
                mode: Union[SM2CipherMode, str] = SM2CipherMode.C1C3C2) -> bytes:
    return _as_private_key(private_key).decrypt(cipher_text, mode)
