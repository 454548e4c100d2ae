"""Shared fixtures for the fraud baselines test suite."""

import pytest


@pytest.fixture
def paysim_csv() -> bytes:
    return (
        b"step,type,amount,nameOrig,nameDest,isFraud\n"
        b"1,PAYMENT,9839.64,C1231006815,M1979787155,0\n"
        b"1,TRANSFER,181.0,C1305486145,C553264065,1\n"
        b"2,CASH_OUT,181.0,C1305486145,C38997010,1\n"
        b"3,PAYMENT,abc,C1231006815,M1230701703,0\n"
        b",, ,,,x\n"
    )
