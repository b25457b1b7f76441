"""
Convert a base58 private key (wallet export format) into a JSON byte array keypair file.

Usage: python scripts/convert_private_key.py <base58_private_key> [out_path]
"""
import sys

from core_transfer.errors import InvalidKeyError
from core_transfer.keys import convert_base58_secret, write_keypair


def main(private_key_b58: str, out_path: str = "converted-keypair.json") -> int:
    try:
        keypair = convert_base58_secret(private_key_b58)
    except InvalidKeyError as exc:
        print(f"Conversion failed: {exc}")
        return 1
    path = write_keypair(keypair, out_path)
    print(f"Public key: {keypair.pubkey()}")
    print(f"Private key saved to {path}")
    return 0


if __name__ == "__main__":
    if len(sys.argv) < 2:
        print(__doc__)
        sys.exit(1)
    sys.exit(main(*sys.argv[1:3]))
