from typing import Tuple, Optional, Union, Literal

from .commons import CryptoError, ValidationError


def add_mod_prime(p: int, a: int, b: int) -> int:
    """模素数加法"""
    return (a + b) % p


def adds_mod_prime(p: int, *args):
    """模素数连加"""
    res = 0
    for arg in args:
        res = add_mod_prime(p, res, arg)
    return res


def minus_mod_prime(p: int, a: int, b: int) -> int:
    """模素数减法"""
    return (a - b) % p


def mul_mod_prime(p: int, a: int, b: int) -> int:
    """模素数乘法"""
    return (a * b) % p


def muls_mod_prime(p: int, *args):
    """模素数连乘"""
    res = 1
    for arg in args:
        res = mul_mod_prime(p, res, arg)
    return res


def pow_mod_prime(p: int, n: int, k: int):
    """快速计算n ** k % p的方法"""
    if k == 0:
        return 1

    res = 1
    mask = 1
    next_pow = n % p
    for _ in range(k.bit_length()):
        if k & mask != 0:
            res = res * next_pow % p
        next_pow = next_pow * next_pow % p
        mask = mask << 1
    return res


def ex_gcd(a: int, b: int) -> Tuple[int, int, int]:
    """扩展的欧几里得算法
    通常用于求最大公约数和模素数求逆
    r = gcd(a, b)
    r = a * x + b * y
    """
    if a < b:
        a, b = b, a

    if b == 0:
        return a, 1, 0

    r, x, y = ex_gcd(b, a % b)
    x, y = y, x - (a // b) * y
    return r, x, y


def inverse_mod_prime(p: int, n: int) -> int:
    """求p素域中的乘法逆元"""
    n = n % p
    if n == 0:
        raise CryptoError('0在素域中没有乘法逆元/Zero has no multiplicative inverse')
    r, x, y = ex_gcd(p, n)
    if r != 1:
        raise CryptoError(f'{n}与模数不互素/{n} is not coprime to the modulus')
    return y % p


def square_root_mod_prime(p: int, g: int) -> Optional[int]:
    """求解模素数平方根，无解时返回None

    GB/T 32918.1-2016 B.1.3 (P29)，仅实现了p ≡ 3 (mod 4)和p ≡ 5 (mod 8)两种情况，SM2曲线属于前者
    """
    g = g % p
    if g == 0:
        return 0

    if p % 4 == 3:
        u = (p - 3) // 4
        y = pow_mod_prime(p, g, u + 1)
        z = (y * y) % p
        if z == g:
            return y
        else:
            return None

    if p % 8 == 5:
        u = (p - 5) // 8
        z = pow_mod_prime(p, g, 2 * u + 1)
        if (z - 1) % p == 0:
            return pow_mod_prime(p, g, u + 1)
        elif (z + 1) % p == 0:
            return (pow_mod_prime(p, 4 * g, u) * 2 * g) % p
        else:
            return None

    raise ValidationError(f'不支持模{p}的平方根计算/Square root modulo {p} is not supported')


def rls_32(x: int, n: int) -> int:
    """32比特循环左移"""
    n = n % 32
    return ((x << n) & 0xffffffff) | (x >> (32 - n))


def rrs_32(x: int, n: int) -> int:
    """32比特循环右移"""
    return ((x >> n) | (x << (32 - n))) & 0xffffffff


def rrs_64(x: int, n: int) -> int:
    """64比特循环右移"""
    return ((x >> n) | (x << (64 - n))) & 0xffffffffffffffff


def mod_adds_32(*args) -> int:
    """模2^32连加"""
    return sum(args) & 0xffffffff


def mod_adds_64(*args) -> int:
    """模2^64连加"""
    return sum(args) & 0xffffffffffffffff


def uint_incr(counter: bytearray, byte_len: Optional[int] = None):
    """将字节串表示的大端无符号整数原地加一，溢出时回绕为0

    :param byte_len: 只对最右侧的byte_len个字节计数（例如GCM的inc32），缺省为全部字节
    """
    stop = len(counter) - (len(counter) if byte_len is None else byte_len)
    for i in range(len(counter) - 1, stop - 1, -1):
        if counter[i] == 0xff:
            counter[i] = 0x00
        else:
            counter[i] += 1
            return


def xor_on_bytes(x: Union[bytes, bytearray, memoryview], y: Union[bytes, bytearray, memoryview],
                 byteorder: Literal['big', 'little'] = 'big', signed=False,
                 bytes_or_int: Literal['bytes', 'int'] = 'bytes') -> Union[bytes, int]:
    x_int = int.from_bytes(x, byteorder=byteorder, signed=signed)
    y_int = int.from_bytes(y, byteorder=byteorder, signed=signed)

    res = x_int ^ y_int
    if bytes_or_int == 'bytes':
        return res.to_bytes(max(len(x), len(y)), byteorder=byteorder, signed=signed)
    if bytes_or_int == 'int':
        return res

    raise ValueError('结果类型必须是"bytes"或"int"')


MASK_127_BIT = 0x01 << 127
REMAINDER = 0b11100001 << 120  # 多项式模的剩余项，即 1 + x + x^2 + x^7


def mul_gf_2_128(u: int, v: int) -> int:
    """伽罗华域GF(2^128)上的多项式乘法。

    GB/T 15852.3-2019规定的模多项式为 m(x) = 1 + x + x^2 + x^7 + x^128，
    多项式的二进制系数是little-endian，即128位整数的最高位表示x^0的系数，最低位表示x^127的系数。

    :param u: 多项式的二进制表示
    :param v: 多项式的二进制表示
    :return: u和v在GF(2^128)上的多项式乘法结果
    """
    w = 0  # 乘法结果
    z = u  # 对应v的第i位的z = u * x^i

    # 从v的x^0项开始（最高位）依次检查，如果v的某位为1，则结果加上对应位的z
    # z * x在little-endian表示下为右移一位，如果移出的是x^127的系数，则加上m(x) - x^128
    v_mask = MASK_127_BIT
    for _ in range(128):
        if v & v_mask != 0:
            w ^= z
        v_mask >>= 1

        if z & 0x01 == 0:
            z = z >> 1
        else:
            z = (z >> 1) ^ REMAINDER
    return w
