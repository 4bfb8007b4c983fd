# generate_keys.py

from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives import serialization

from pushalarm.utils import bytes_to_url_base64

# 1) Wygeneruj klucz prywatny P-256 (VAPID)
private_key = ec.generate_private_key(ec.SECP256R1())

# 2) Surowy skalar klucza prywatnego (32 bajty)
private_raw = private_key.private_numbers().private_value.to_bytes(32, "big")

# 3) Klucz publiczny jako nieskompresowany punkt (65 bajtów), tak jak chce przeglądarka
public_raw = private_key.public_key().public_bytes(
    encoding=serialization.Encoding.X962,
    format=serialization.PublicFormat.UncompressedPoint,
)

print(f"VAPID_PUBLIC_KEY={bytes_to_url_base64(public_raw)}")
print(f"VAPID_PRIVATE_KEY={bytes_to_url_base64(private_raw)}")
print("VAPID_SUBJECT=mailto:you@example.com")
