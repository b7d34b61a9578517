from uuid import uuid4


def generate_uid() -> str:
    return uuid4().hex
