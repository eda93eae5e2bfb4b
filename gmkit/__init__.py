from .commons import GMKitError, ValidationError, CryptoError, AuthenticationFailure, EncodingError, \
    Codec, BlockCipherAlgorithm, MerkleDamgardHash
from .constants import CipherMode, PaddingMode, SM2CipherMode, SignatureFormat, parse_option
from .encoding import hex_to_bytes, bytes_to_hex, base64_encode, base64_decode, utf8_encode, utf8_decode, \
    to_octets, to_message
from .rng import RandomSource, SystemRandomSource, DegradedRandomSource, default_random_source, random_scalar
from .mac import hmac, GHash, ghash, gmac
from .sm3 import SM3Hash, sm3_hash, sm3_hmac, sm3_kdf
from .sha2 import SHA256Hash, SHA384Hash, SHA512Hash, sha256, sha384, sha512, sha256_hmac, sha384_hmac, \
    sha512_hmac
from .padding import PaddingException, PKCS7Padding, pkcs7_pad, pkcs7_unpad, get_padding
from .mode import Mode, ECB, CBC, CTR, CFB, OFB, GCM, get_mode
from .gcm import gcm_encrypt, gcm_decrypt
from .sm4 import SM4, sm4_encrypt_block, sm4_decrypt_block, SM4Encryptor, SM4Decryptor, sm4_encrypt, \
    sm4_decrypt, sm4_gmac
from .zuc import ZUC, ZUCCipher, zuc_keystream, zuc_encrypt, zuc_decrypt, zuc_mac, eea3, eia3
from .asn1 import ASN1Tag, ASN1Node, encode_length, decode_length, encode_integer, decode_integer, \
    encode_sequence, decode_sequence, decode_tlv, encode_signature, decode_signature, raw_to_der, der_to_raw, \
    asn1_to_xml, signature_to_xml
from .sm2 import SM2Point, SM2_POINT_G, SM2PublicKey, SM2PrivateKey, KeyPair, DEFAULT_USER_ID, \
    SM2_SIGN_RETRY_LIMIT, generate_keypair, generate_z, sm2_sign, sm2_verify, sm2_encrypt, sm2_decrypt

__version__ = '1.0.0'
