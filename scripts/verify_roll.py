#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Script para auditar una tirada a partir de su semilla.

Uso:
    python scripts/verify_roll.py --seed "<visitor_id>-<rolls_made>-<timestamp_ms>"
    python scripts/verify_roll.py --visitor-id ID --rolls-made 3 --timestamp 1760000000000
    python scripts/verify_roll.py --seed ... --hash <resultHash>   # además verifica el hash
"""

import argparse
import io
import sys
from pathlib import Path

# Configurar stdout para UTF-8 en Windows
if sys.platform == 'win32':
    sys.stdout = io.TextIOWrapper(sys.stdout.buffer, encoding='utf-8')

BACKEND_DIR = Path(__file__).resolve().parent.parent
if str(BACKEND_DIR) not in sys.path:
    sys.path.insert(0, str(BACKEND_DIR))

from src.services.roll_engine import build_seed, derive_outcome  # noqa: E402


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Reproduce una tirada a partir de su semilla")
    parser.add_argument("--seed", help="Semilla completa")
    parser.add_argument("--visitor-id", help="ID del visitante")
    parser.add_argument("--rolls-made", type=int, help="Tiradas hechas ANTES de esta tirada")
    parser.add_argument("--timestamp", type=int, help="Marca temporal en milisegundos")
    parser.add_argument("--hash", dest="result_hash", help="resultHash informado, para verificar")
    args = parser.parse_args(argv)

    if not args.seed:
        if args.visitor_id is None or args.rolls_made is None or args.timestamp is None:
            parser.error("Indicar --seed o bien --visitor-id, --rolls-made y --timestamp")
        args.seed = build_seed(args.visitor_id, args.rolls_made, args.timestamp)
    return args


def main(argv=None) -> int:
    args = parse_args(argv)
    outcome = derive_outcome(args.seed)

    print("=" * 60)
    print(f"Semilla:    {outcome.seed}")
    print(f"Posiciones: {list(outcome.positions)}")
    print(f"Símbolos:   {' '.join(s.emoji for s in outcome.symbols)} "
          f"({'-'.join(s.name for s in outcome.symbols)})")
    print(f"Bono:       {outcome.bonus_won}")
    print(f"Hash:       {outcome.result_hash}")
    print("=" * 60)

    if args.result_hash:
        if args.result_hash.strip().lower() == outcome.result_hash:
            print("[OK] El hash coincide con la semilla")
            return 0
        print("[ERROR] El hash NO coincide con la semilla")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
