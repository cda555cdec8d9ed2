"""
BN254 curve and pairing primitives for BLS signatures.

Signatures are points on G1 and public keys are points on G2, so a signature
costs 64 bytes on the wire and verification needs one pairing per signer plus
one for the signature. Points are kept in the projective representation used
by ``py_ecc.optimized_bn128``.

Hash-to-curve follows RFC 9380: ``expand_message_xmd`` instantiated with
keccak256, two field elements per message and the Shallue-van de Woestijne
map for ``y^2 = x^3 + 3``.
"""
import logging
from typing import Iterable, List, Tuple

from eth_utils import keccak
from py_ecc.optimized_bn128 import (
    FQ, FQ2, FQ12,
    G2, Z1,
    add, b, b2, final_exponentiate, is_inf, is_on_curve,
    multiply, neg, normalize, pairing,
)

from ..exceptions import MalformedInputError
from .constants import CURVE_ORDER, FIELD_MODULUS, G1_POINT_SIZE, G2_POINT_SIZE

logger = logging.getLogger(__name__)

PointG1 = Tuple[FQ, FQ, FQ]
PointG2 = Tuple[FQ2, FQ2, FQ2]

P = FIELD_MODULUS

# keccak256 input block size, used for the zero pad of expand_message_xmd
_KECCAK_BLOCK_SIZE = 136
_KECCAK_DIGEST_SIZE = 32

__all__ = [
    "PointG1", "PointG2",
    "expand_message", "hash_to_field", "map_to_g1", "hash_to_g1",
    "serialize_g1", "deserialize_g1", "serialize_g2", "deserialize_g2",
    "pairing_check", "sum_points", "NEG_G2",
]


def _is_square(n: int) -> bool:
    return n == 0 or pow(n, (P - 1) // 2, P) == 1


def _sqrt(n: int) -> int:
    # p = 3 (mod 4)
    root = pow(n, (P + 1) // 4, P)
    if root * root % P != n % P:
        raise ValueError("Not a quadratic residue")
    return root


def _inv0(n: int) -> int:
    return pow(n, P - 2, P) if n else 0


def _sgn0(n: int) -> int:
    return n % 2


# Shallue-van de Woestijne constants for y^2 = x^3 + 3 with Z = 1
_Z = 1
_B = 3
_GZ = (_Z ** 3 + _B) % P
_C1 = _GZ
_C2 = (-_Z * _inv0(2)) % P
_C3 = _sqrt((-_GZ * 3 * _Z * _Z) % P)
if _sgn0(_C3):
    _C3 = P - _C3
_C4 = (-4 * _GZ * _inv0(3 * _Z * _Z)) % P

NEG_G2 = neg(G2)


def expand_message(domain: bytes, message: bytes, length: int = 96) -> bytes:
    """
    Expand a message into ``length`` uniform bytes (expand_message_xmd).

    Args:
        domain: Domain separation tag, 1 to 255 bytes
        message: Message to expand
        length: Number of output bytes

    Returns:
        ``length`` pseudo-random bytes bound to both domain and message

    Raises:
        MalformedInputError: If the domain tag or the requested length is invalid
    """
    if not 0 < len(domain) <= 255:
        raise MalformedInputError(f"Domain tag must be 1-255 bytes (got {len(domain)})")
    ell = -(-length // _KECCAK_DIGEST_SIZE)
    if length <= 0 or ell > 255:
        raise MalformedInputError(f"Cannot expand message to {length} bytes")

    dst_prime = domain + bytes([len(domain)])
    b0 = keccak(
        bytes(_KECCAK_BLOCK_SIZE) + message + length.to_bytes(2, "big") + b"\x00" + dst_prime
    )
    block = keccak(b0 + b"\x01" + dst_prime)
    blocks = [block]
    for i in range(2, ell + 1):
        mixed = bytes(x ^ y for x, y in zip(b0, block))
        block = keccak(mixed + bytes([i]) + dst_prime)
        blocks.append(block)
    return b"".join(blocks)[:length]


def hash_to_field(message: bytes, domain: bytes) -> Tuple[int, int]:
    """Hash a message to two base field elements"""
    uniform = expand_message(domain, message, 96)
    u0 = int.from_bytes(uniform[:48], "big") % P
    u1 = int.from_bytes(uniform[48:], "big") % P
    return u0, u1


def map_to_g1(u: int) -> PointG1:
    """
    Map a field element to a G1 point with the Shallue-van de Woestijne map.

    Args:
        u: Field element in ``[0, p)``

    Returns:
        Projective G1 point

    Raises:
        MalformedInputError: If ``u`` is outside the field
    """
    if not 0 <= u < P:
        raise MalformedInputError("Field element out of range")

    tv1 = u * u * _C1 % P
    tv2 = (1 + tv1) % P
    tv1 = (1 - tv1) % P
    tv3 = _inv0(tv1 * tv2 % P)
    tv4 = u * tv1 * tv3 * _C3 % P

    x1 = (_C2 - tv4) % P
    gx1 = (pow(x1, 3, P) + _B) % P
    x2 = (_C2 + tv4) % P
    gx2 = (pow(x2, 3, P) + _B) % P
    x3 = (_Z + _C4 * pow(tv2 * tv2 * tv3 % P, 2, P)) % P

    if _is_square(gx1):
        x = x1
    elif _is_square(gx2):
        x = x2
    else:
        x = x3
    y = _sqrt((pow(x, 3, P) + _B) % P)
    if _sgn0(u) != _sgn0(y):
        y = (P - y) % P
    return (FQ(x), FQ(y), FQ.one())


def hash_to_g1(message: bytes, domain: bytes) -> PointG1:
    """
    Hash a message to a G1 point.

    G1 has cofactor 1 on BN254, so the sum of the two mapped points is already
    in the prime-order group.
    """
    u0, u1 = hash_to_field(message, domain)
    point = add(map_to_g1(u0), map_to_g1(u1))
    if not is_on_curve(point, b):
        raise ValueError("hash_to_g1 produced a point off the curve")
    return point


def _int(coeff) -> int:
    return int(getattr(coeff, "n", coeff))


def serialize_g1(point: PointG1) -> bytes:
    """Serialize a G1 point as ``x || y`` (infinity is 64 zero bytes)"""
    if is_inf(point):
        return bytes(G1_POINT_SIZE)
    x, y = normalize(point)
    return _int(x).to_bytes(32, "big") + _int(y).to_bytes(32, "big")


def deserialize_g1(data: bytes) -> PointG1:
    """
    Deserialize and validate a 64-byte G1 point.

    Raises:
        MalformedInputError: If the encoding has the wrong length, a coordinate
            is not a field element or the point is not on the curve
    """
    if not isinstance(data, (bytes, bytearray)) or len(data) != G1_POINT_SIZE:
        raise MalformedInputError(f"G1 point must be {G1_POINT_SIZE} bytes")
    if not any(data):
        return Z1
    x = int.from_bytes(data[:32], "big")
    y = int.from_bytes(data[32:], "big")
    if x >= P or y >= P:
        raise MalformedInputError("G1 coordinate is not a field element")
    point = (FQ(x), FQ(y), FQ.one())
    if not is_on_curve(point, b):
        raise MalformedInputError("Point is not on the G1 curve")
    return point


def serialize_g2(point: PointG2) -> bytes:
    """Serialize a G2 point as ``x_im || x_re || y_im || y_re``"""
    if is_inf(point):
        raise MalformedInputError("Cannot serialize the G2 point at infinity")
    x, y = normalize(point)
    x_re, x_im = (_int(c) for c in x.coeffs)
    y_re, y_im = (_int(c) for c in y.coeffs)
    return b"".join(n.to_bytes(32, "big") for n in (x_im, x_re, y_im, y_re))


def deserialize_g2(data: bytes) -> PointG2:
    """
    Deserialize and validate a 128-byte G2 point.

    The point must lie in the prime-order subgroup; BN254's twist has a large
    cofactor, so being on the curve is not enough.

    Raises:
        MalformedInputError: On bad length, non-field coordinates, the point at
            infinity, points off the twist or outside the subgroup
    """
    if not isinstance(data, (bytes, bytearray)) or len(data) != G2_POINT_SIZE:
        raise MalformedInputError(f"G2 point must be {G2_POINT_SIZE} bytes")
    x_im, x_re, y_im, y_re = (
        int.from_bytes(data[i:i + 32], "big") for i in range(0, G2_POINT_SIZE, 32)
    )
    if max(x_im, x_re, y_im, y_re) >= P:
        raise MalformedInputError("G2 coordinate is not a field element")
    if not any(data):
        raise MalformedInputError("G2 point at infinity is not a valid public key")
    point = (FQ2([x_re, x_im]), FQ2([y_re, y_im]), FQ2.one())
    if not is_on_curve(point, b2):
        raise MalformedInputError("Point is not on the G2 curve")
    if not is_inf(multiply(point, CURVE_ORDER)):
        raise MalformedInputError("G2 point is not in the prime-order subgroup")
    return point


def pairing_check(pairs: Iterable[Tuple[PointG2, PointG1]]) -> bool:
    """
    Check that the product of pairings ``e(Q_i, P_i)`` equals one.

    Miller loops are multiplied together and a single final exponentiation is
    applied to the product.

    Args:
        pairs: (G2 point, G1 point) tuples

    Returns:
        True if the product is the identity of GT
    """
    acc = FQ12.one()
    count = 0
    for q, p in pairs:
        acc = acc * pairing(q, p, final_exponentiate=False)
        count += 1
    if count == 0:
        raise MalformedInputError("Pairing check needs at least one pair")
    result = final_exponentiate(acc) == FQ12.one()
    logger.debug("Pairing check over %d pairs: %s", count, result)
    return result


def sum_points(points: List) -> Tuple:
    """Group sum of a non-empty list of points on the same curve"""
    total = points[0]
    for point in points[1:]:
        total = add(total, point)
    return total
