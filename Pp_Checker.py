#!/usr/bin/env python3
"""
Check a Pp_Solver results file: each block must be a genuine counterexample
n with prod{ p : n < p <= 2n } < 2^n.

Products are recomputed with sympy, independently of the solver's prime table
and big-integer backend.  With --bound B the complete dense list up to B is
recomputed as well, and missing or extra entries are reported.
"""

import argparse
import math
import re
import sys

import sympy

try:
    sys.set_int_max_str_digits(0)
except AttributeError:
    pass


_N_RE = re.compile(r"^Counterexample at n = (\d+)$")
_PRODUCT_RE = re.compile(r"^Product of primes between n and 2n = (\d+)$")
_EXP_RE = re.compile(r"^2\^n = (\d+)$")


def prime_product(n):
    """Product of primes p with n < p <= 2n."""
    return math.prod(int(p) for p in sympy.primerange(n + 1, 2 * n + 1))


def expected_counterexamples(bound):
    """Every n in [1, bound] with prime_product(n) < 2^n."""
    return [n for n in range(1, bound + 1) if prime_product(n) < (1 << n)]


def parse_results(lines):
    """Yield (line_num, n, product, exp) for each counterexample block.

    Anything that is not part of a block (timing lines, blanks) is skipped.
    A block that starts but does not finish raises ValueError.
    """
    lines = list(lines)
    i = 0
    while i < len(lines):
        m = _N_RE.match(lines[i].strip())
        if not m:
            i += 1
            continue
        if i + 2 >= len(lines):
            raise ValueError(f"line {i + 1}: truncated block")
        mp = _PRODUCT_RE.match(lines[i + 1].strip())
        me = _EXP_RE.match(lines[i + 2].strip())
        if not mp or not me:
            raise ValueError(f"line {i + 1}: malformed block")
        yield i + 1, int(m.group(1)), int(mp.group(1)), int(me.group(1))
        i += 3


def check_counterexample(n, product, exp):
    """Recompute one record and report which parts hold."""
    true_product = prime_product(n)
    true_exp = 1 << n
    return {
        'n': n,
        'product_ok': product == true_product,
        'exp_ok': exp == true_exp,
        'is_counterexample': true_product < true_exp,
        'true_product': true_product,
        'prime_factors': [int(p) for p in sympy.primerange(n + 1, 2 * n + 1)],
    }


def check_file(filename, bound=None, out=None):
    out = out if out is not None else sys.stdout
    print("Checking counterexamples in results file...", file=out)
    print("=" * 70, file=out)

    errors = []
    seen = []

    with open(filename, 'r', encoding='utf-8') as f:
        records = list(parse_results(f))

    for line_num, n, product, exp in records:
        result = check_counterexample(n, product, exp)
        seen.append(n)
        if not (result['product_ok'] and result['exp_ok'] and result['is_counterexample']):
            errors.append((line_num, result))
            print(f"\n❌ FAILED at line {line_num}:", file=out)
            print(f"   n = {n}", file=out)
            print(f"   primes in (n, 2n] = {result['prime_factors']}", file=out)
            print(f"   product ok = {result['product_ok']}, 2^n ok = {result['exp_ok']}, "
                  f"product < 2^n = {result['is_counterexample']}", file=out)
        else:
            print(f"n = {n:,} product has {len(result['prime_factors'])} primes, "
                  f"{product.bit_length()} bits vs 2^n with {n + 1} bits", file=out)

    if seen != sorted(set(seen)):
        errors.append((0, {'n': None, 'reason': 'not strictly ascending'}))
        print("\n❌ FAILED: counterexamples are not strictly ascending by n", file=out)

    if bound is not None:
        expected = expected_counterexamples(bound)
        listed = set(n for n in seen if n <= bound)
        missing = sorted(set(expected) - listed)
        extra = sorted(listed - set(expected))
        if missing:
            errors.append((0, {'n': None, 'missing': missing}))
            print(f"\n❌ Missing counterexamples up to {bound}: {missing}", file=out)
        if extra:
            errors.append((0, {'n': None, 'extra': extra}))
            print(f"\n❌ Listed but not counterexamples up to {bound}: {extra}", file=out)

    print("\n" + "=" * 70, file=out)
    print(f"Checked {len(records)} entries", file=out)

    if errors:
        print(f"\n⚠️  Found {len(errors)} ERRORS:", file=out)
        for line_num, result in errors:
            print(f"   Line {line_num}: {result}", file=out)
    else:
        print("\n✓ All entries are valid counterexamples!", file=out)

    return len(errors) == 0


def main(argv=None):
    ap = argparse.ArgumentParser(description="Verify a Pp_Solver results file with sympy.")
    ap.add_argument("results", nargs="?", default="results.txt")
    ap.add_argument("--bound", type=int, default=None,
                    help="Also recompute every dense counterexample up to this bound.")
    args = ap.parse_args(argv)
    return 0 if check_file(args.results, bound=args.bound) else 1


if __name__ == '__main__':
    sys.exit(main())
