"""
Unit tests for ZooKeeper connection management and retry policy.
"""

import logging

import pytest
from kazoo.client import KazooState

from zkfss.core.exceptions import ConnectivityError, HostnameResolutionError
from zkfss.core.zookeeper.client import (
    ZooKeeperConnection,
    _log_state_change,
    resolve_local_hostname,
)
from zkfss.core.zookeeper.retry_policy import exponential_backoff_retry


class TestResolveLocalHostname:
    def test_returns_resolver_value(self):
        assert resolve_local_hostname(lambda: "box-1") == "box-1"

    def test_os_error_becomes_hostname_error(self):
        def broken():
            raise OSError("no name")

        with pytest.raises(HostnameResolutionError) as exc_info:
            resolve_local_hostname(broken)

        assert isinstance(exc_info.value.original_error, OSError)

    def test_empty_hostname_rejected(self):
        with pytest.raises(HostnameResolutionError):
            resolve_local_hostname(lambda: "")

    def test_defaults_to_socket_gethostname(self, mocker):
        mocker.patch("zkfss.core.zookeeper.client.socket.gethostname", return_value="sock-host")

        assert resolve_local_hostname() == "sock-host"


class TestExponentialBackoffRetry:
    def test_defaults(self):
        retry = exponential_backoff_retry()

        assert retry.max_tries == 3
        assert retry.delay == 1.0
        assert retry.backoff == 2.0
        assert retry.max_delay == 60.0

    def test_each_call_returns_new_policy(self):
        assert exponential_backoff_retry() is not exponential_backoff_retry()


class TestZooKeeperConnection:
    def test_wrapped_client_not_started(self, fake_zk):
        connection = ZooKeeperConnection.wrap(fake_zk, 1.0)

        connection.open()

        assert fake_zk.start_calls == 0
        assert fake_zk.listeners == [_log_state_change]
        assert not connection.owned

    def test_owned_client_started_with_timeout(self, mocker, fake_zk):
        start = mocker.spy(fake_zk, "start")
        connection = ZooKeeperConnection(fake_zk, owned=True, connection_timeout=2.5)

        connection.open()

        start.assert_called_once_with(timeout=2.5)
        assert connection.connected is True

    def test_owned_client_start_failure_discards_client(self, mocker, fake_zk):
        mocker.patch.object(fake_zk, "start", side_effect=RuntimeError("refused"))
        connection = ZooKeeperConnection(fake_zk, owned=True, connection_timeout=1.0)

        with pytest.raises(ConnectivityError):
            connection.open()

        assert fake_zk.close_calls == 1
        assert fake_zk.listeners == []

    def test_close_removes_listener_and_closes(self, fake_zk):
        connection = ZooKeeperConnection.wrap(fake_zk, 1.0)
        connection.open()

        connection.close()

        assert fake_zk.listeners == []
        assert fake_zk.stop_calls == 1
        assert fake_zk.close_calls == 1

    def test_close_logs_client_errors(self, mocker, fake_zk, caplog):
        mocker.patch.object(fake_zk, "stop", side_effect=RuntimeError("already gone"))
        connection = ZooKeeperConnection.wrap(fake_zk, 1.0)
        connection.open()

        with caplog.at_level(logging.ERROR, logger="zkfss.core.zookeeper.client"):
            connection.close()

        assert "Error while closing ZooKeeper client" in caplog.text

    def test_create_builds_kazoo_client(self, mocker, fake_zk):
        kazoo_client = mocker.patch(
            "zkfss.core.zookeeper.client.KazooClient", return_value=fake_zk
        )
        retry = exponential_backoff_retry(max_retries=5)

        connection = ZooKeeperConnection.create("zk:2181", 3.0, retry)

        assert connection.owned
        kwargs = kazoo_client.call_args.kwargs
        assert kwargs["hosts"] == "zk:2181"
        assert kwargs["timeout"] == 3.0
        assert kwargs["connection_retry"] is retry
        assert kwargs["command_retry"] is not retry


class TestStateListener:
    @pytest.mark.parametrize(
        "state, level",
        [
            (KazooState.CONNECTED, logging.INFO),
            (KazooState.SUSPENDED, logging.WARNING),
            (KazooState.LOST, logging.ERROR),
        ],
    )
    def test_transitions_logged(self, caplog, state, level):
        with caplog.at_level(logging.DEBUG, logger="zkfss.core.zookeeper.client"):
            _log_state_change(state)

        assert caplog.records[-1].levelno == level
