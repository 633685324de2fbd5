"""ID generation utilities."""

from nanoid import generate

ALPHABET = "0123456789ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz"
ID_LENGTH = 12


def gen_id(prefix: str) -> str:
    return f"{prefix}{generate(ALPHABET, ID_LENGTH)}"


def user_id() -> str:
    return gen_id("us_")


def task_id() -> str:
    return gen_id("tk_")


def response_id() -> str:
    return gen_id("rs_")


def reply_id() -> str:
    return gen_id("rp_")


def notification_id() -> str:
    return gen_id("nt_")


def ad_id() -> str:
    return gen_id("ad_")


def category_id() -> str:
    return gen_id("ct_")


def tag_id() -> str:
    return gen_id("tg_")


def history_id() -> str:
    return gen_id("mh_")
