"""
Constants for the BLS signature scheme over BN254.
"""
from eth_utils import keccak
from py_ecc.optimized_bn128 import curve_order, field_modulus

# Base field modulus (p) and prime subgroup order (r) of BN254
FIELD_MODULUS = field_modulus
CURVE_ORDER = curve_order

# Valid secret keys are 1..r-1
SECRET_KEY_MIN = 1
SECRET_KEY_MAX = CURVE_ORDER - 1

# Domain tag for hash-to-curve and leading separator of every signed payload
DOMAIN = keccak(bytes.fromhex("feedbee5"))

G1_POINT_SIZE = 64
G2_POINT_SIZE = 128
