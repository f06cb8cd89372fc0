#!/usr/bin/env python3

import pytest

assertion_count = 0

AWS_VARIABLES = (
    'AWS_ACCESS_KEY_ID',
    'AWS_SECRET_ACCESS_KEY',
    'AWS_USE_PATH_STYLE',
    'AWS_BUCKET_NAME',
    'AWS_ENDPOINT_URL',
    'AWS_DEFAULT_REGION',
)


def pytest_assertion_pass(item, lineno, orig, expl):
    global assertion_count
    assertion_count += 1


def pytest_terminal_summary(terminalreporter, exitstatus, config):
    print(f'{assertion_count} assertions tested.')


@pytest.fixture(autouse=True)
def isolate_environment(monkeypatch):
    """S3 settings fall back to the environment, so the settings of the host must not leak into the tests."""
    for name in AWS_VARIABLES:
        monkeypatch.delenv(name, raising=False)
    # The local test servers must be reached directly even when the host configures a proxy.
    monkeypatch.setenv("NO_PROXY", "127.0.0.1,localhost")
    monkeypatch.setenv("no_proxy", "127.0.0.1,localhost")
