"""
Pytest configuration and shared fixtures for mtr-report tests.

Raw captures below follow the `mtr --raw` line format:
  h <idx> <address>, d <idx> <name>, x <idx> <seq>, p <idx> <usec> <seq>
"""
import pytest

from mtrreport.config import Settings


def raw(*lines):
    return "\n".join(lines) + "\n"


@pytest.fixture
def settings():
    """Settings isolated from the environment and any .env file."""
    return Settings(_env_file=None, mtr_path="/usr/sbin/mtr", table_width=120)


@pytest.fixture
def three_hop_raw():
    """Three hops; hop 3 repeats hop 2's address. Every hop answers twice."""
    return raw(
        "h 0 10.0.0.1",
        "d 0 alpha.example.net",
        "h 1 10.0.0.2",
        "d 1 beta.example.net",
        "h 2 10.0.0.2",
        "d 2 gamma.example.net",
        "x 0 100",
        "p 0 1000 100",
        "x 1 101",
        "p 1 5000 101",
        "x 2 102",
        "p 2 6000 102",
        "x 0 103",
        "p 0 3000 103",
        "x 1 104",
        "p 1 7000 104",
        "x 2 105",
        "p 2 8000 105",
    )


@pytest.fixture
def partial_loss_raw():
    """One hop, five probes announced, three answered at 10/20/30 ms."""
    return raw(
        "h 0 192.0.2.1",
        "x 0 1",
        "p 0 10000 1",
        "x 0 2",
        "p 0 20000 2",
        "x 0 3",
        "x 0 4",
        "p 0 30000 4",
        "x 0 5",
    )
