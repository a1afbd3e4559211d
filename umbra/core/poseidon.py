"""
Copyright (C) 2026 Garudex Labs.  All Rights Reserved.
Umbra, a product of Garudex Labs

Poseidon permutation over the BN254 scalar field.

This is the circomlib flavour of Poseidon (x^5 S-box, 8 full rounds, partial
rounds by width) so that tree nodes computed here match the ones the withdrawal
circuit computes. Round constants and the MDS matrix are not shipped as tables:
they are derived with the Grain LFSR procedure from the Poseidon reference
parameter generator, seeded with (field, sbox, n, t, R_F, R_P), the same way the
published circomlib constants were produced.

Example:
    >>> from umbra.core.poseidon import poseidon
    >>> hex(poseidon([1, 2]))
    '0x115cc0f5e7d690413df64c6b9662e9cf2a3617f2743245519e19607a4417189a'
"""

import functools
from dataclasses import dataclass
from typing import List, Sequence

from umbra.core.field import FIELD_MODULUS

FULL_ROUNDS = 8

# Partial rounds indexed by state width t (circomlib N_ROUNDS_P)
PARTIAL_ROUNDS = {
    2: 56,
    3: 57,
    4: 56,
    5: 60,
    6: 60,
}

# Grain seed fields: prime field, x^alpha S-box
_GRAIN_FIELD_PRIME = 1
_GRAIN_SBOX_POWER = 0

_FIELD_BITS = FIELD_MODULUS.bit_length()


class _GrainLFSR:
    """
    80-bit self-shrinking Grain LFSR used by the Poseidon parameter generator.

    Output bits come in pairs: a 1 selects the following bit, a 0 discards it.
    """

    def __init__(self, field_size: int, width: int, full_rounds: int, partial_rounds: int):
        state: List[int] = []
        for value, length in (
            (_GRAIN_FIELD_PRIME, 2),
            (_GRAIN_SBOX_POWER, 4),
            (field_size, 12),
            (width, 12),
            (full_rounds, 10),
            (partial_rounds, 10),
        ):
            state.extend(int(bit) for bit in format(value, f"0{length}b"))
        state.extend([1] * 30)
        self._state = state

        for _ in range(160):
            self._clock()

    def _clock(self) -> int:
        s = self._state
        bit = s[62] ^ s[51] ^ s[38] ^ s[23] ^ s[13] ^ s[0]
        s.pop(0)
        s.append(bit)
        return bit

    def next_bit(self) -> int:
        bit = self._clock()
        while bit == 0:
            self._clock()
            bit = self._clock()
        return self._clock()

    def random_bits(self, num_bits: int) -> int:
        """Read num_bits output bits, most significant first."""
        value = 0
        for _ in range(num_bits):
            value = (value << 1) | self.next_bit()
        return value

    def field_element(self) -> int:
        """Rejection-sample a uniformly random field element."""
        value = self.random_bits(_FIELD_BITS)
        while value >= FIELD_MODULUS:
            value = self.random_bits(_FIELD_BITS)
        return value


@dataclass(frozen=True)
class PoseidonParameters:
    """
    Parameters of one Poseidon instance.

    Attributes:
        width: State width t (number of inputs + 1)
        full_rounds: Number of full rounds R_F
        partial_rounds: Number of partial rounds R_P
        round_constants: (R_F + R_P) * t constants, consumed t per round
        mds: t x t Cauchy matrix applied as new[i] = sum_j mds[i][j] * state[j]
    """
    width: int
    full_rounds: int
    partial_rounds: int
    round_constants: tuple
    mds: tuple


def _generate_mds(lfsr: _GrainLFSR, width: int) -> tuple:
    while True:
        values = [lfsr.random_bits(_FIELD_BITS) % FIELD_MODULUS for _ in range(2 * width)]
        while len(set(values)) != len(values):
            values = [lfsr.random_bits(_FIELD_BITS) % FIELD_MODULUS for _ in range(2 * width)]

        xs = values[:width]
        ys = values[width:]
        if any((x + y) % FIELD_MODULUS == 0 for x in xs for y in ys):
            continue

        return tuple(
            tuple(pow(x + y, -1, FIELD_MODULUS) for y in ys)
            for x in xs
        )


@functools.lru_cache(maxsize=None)
def get_parameters(width: int) -> PoseidonParameters:
    """
    Derive (and cache) the Poseidon parameters for a state width.

    Args:
        width: State width t, between 2 and 6

    Returns:
        PoseidonParameters for that width

    Raises:
        ValueError: If the width is not supported
    """
    if width not in PARTIAL_ROUNDS:
        raise ValueError(
            f"Unsupported Poseidon width {width}, expected one of {sorted(PARTIAL_ROUNDS)}"
        )

    partial_rounds = PARTIAL_ROUNDS[width]
    lfsr = _GrainLFSR(_FIELD_BITS, width, FULL_ROUNDS, partial_rounds)

    # Constants are drawn before the matrix; the order is part of the derivation.
    round_constants = tuple(
        lfsr.field_element() for _ in range((FULL_ROUNDS + partial_rounds) * width)
    )
    mds = _generate_mds(lfsr, width)

    return PoseidonParameters(
        width=width,
        full_rounds=FULL_ROUNDS,
        partial_rounds=partial_rounds,
        round_constants=round_constants,
        mds=mds,
    )


def permute(state: Sequence[int]) -> List[int]:
    """
    Apply the Poseidon permutation to a full state.

    Args:
        state: t field elements

    Returns:
        Permuted state
    """
    params = get_parameters(len(state))
    p = FIELD_MODULUS
    t = params.width
    constants = params.round_constants
    mds = params.mds
    half_full = params.full_rounds // 2
    total_rounds = params.full_rounds + params.partial_rounds

    current = [x % p for x in state]
    for r in range(total_rounds):
        offset = r * t
        current = [(current[i] + constants[offset + i]) % p for i in range(t)]

        if r < half_full or r >= half_full + params.partial_rounds:
            current = [pow(x, 5, p) for x in current]
        else:
            current[0] = pow(current[0], 5, p)

        current = [
            sum(row[j] * current[j] for j in range(t)) % p
            for row in mds
        ]

    return current


def poseidon(inputs: Sequence[int]) -> int:
    """
    Hash 1 to 5 field elements (capacity element 0, output state[0]).

    Args:
        inputs: Field elements to hash

    Returns:
        Poseidon hash as a field element
    """
    if not 1 <= len(inputs) <= max(PARTIAL_ROUNDS) - 1:
        raise ValueError(f"Poseidon accepts 1 to 5 inputs, got {len(inputs)}")

    return permute([0, *inputs])[0]


def poseidon_hash2(left: int, right: int) -> int:
    """Two-input Poseidon, the node hash of the commitment tree."""
    return permute([0, left, right])[0]
