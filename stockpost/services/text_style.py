from __future__ import annotations


_UPPER = 0x1D5D4 - ord("A")
_LOWER = 0x1D5EE - ord("a")
_DIGIT = 0x1D7EC - ord("0")


def stylize_bold_serif(text: str) -> str:
    """Map ASCII letters/digits to the mathematical bold sans-serif block; everything else passes through."""
    out = []
    for ch in text:
        if "A" <= ch <= "Z":
            out.append(chr(ord(ch) + _UPPER))
        elif "a" <= ch <= "z":
            out.append(chr(ord(ch) + _LOWER))
        elif "0" <= ch <= "9":
            out.append(chr(ord(ch) + _DIGIT))
        else:
            out.append(ch)
    return "".join(out)
