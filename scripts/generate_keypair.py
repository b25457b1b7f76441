"""
Generate a new wallet keypair and save its secret key as a JSON byte array.

Usage: python scripts/generate_keypair.py [out_path]   (default my-keypair.json)
"""
import sys

from core_transfer.keys import generate_keypair, write_keypair


def main(out_path: str = "my-keypair.json"):
    keypair = generate_keypair()
    path = write_keypair(keypair, out_path)
    print(f"Public key (wallet address): {keypair.pubkey()}")
    print(f"Private key saved to {path}")
    print("Keep this file secret.")


if __name__ == "__main__":
    main(*sys.argv[1:2])
