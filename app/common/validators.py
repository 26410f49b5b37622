"""
Validadores reutilizables para documentos argentinos
"""
import re

CUIT_WEIGHTS = (5, 4, 3, 2, 7, 6, 5, 4, 3, 2)


def only_digits(value) -> str:
    """Quitar todo lo que no sea dígito (guiones, espacios, puntos)."""
    return re.sub(r"\D+", "", str(value or ""))


def calculate_cuit_check_digit(base: str):
    """Dígito verificador de un CUIT/CUIL a partir de sus 10 primeros dígitos."""
    if len(base) != 10 or not base.isdigit():
        return None
    total = sum(int(d) * w for d, w in zip(base, CUIT_WEIGHTS))
    remainder = 11 - (total % 11)
    if remainder == 11:
        return 0
    if remainder == 10:
        return 9
    return remainder


def validate_cuit(value: str) -> bool:
    """Validar formato (11 dígitos) y dígito verificador de un CUIT."""
    digits = only_digits(value)
    if len(digits) != 11:
        return False
    return calculate_cuit_check_digit(digits[:10]) == int(digits[10])


def format_cuit(value: str) -> str:
    """20123456786 -> 20-12345678-6"""
    digits = only_digits(value)
    if len(digits) != 11:
        return value
    return f"{digits[:2]}-{digits[2:10]}-{digits[10]}"
