"""Tests for serialized machine creation."""

import threading
from unittest.mock import MagicMock

import pytest
from charmsync import machines
from charmsync.api.types import AddMachineResult, StorageDirective
from charmsync.core.errors import NotValidError, RemoteError, UserNotFoundError


class TestAddMachine:
    """Test AddMachines calls."""

    def test_returns_machine_id(self):
        api = MagicMock()
        api.add_machines.return_value = [AddMachineResult(machine="7")]
        params = machines.machine_params(base="ubuntu@22.04", constraints="mem=4G")

        assert machines.add_machine(api, params) == "7"
        api.add_machines.assert_called_once_with([params])

    def test_call_holds_lock(self):
        api = MagicMock()

        def add_machines(params):
            assert machines._create_lock.locked()
            return [AddMachineResult(machine="1")]

        api.add_machines.side_effect = add_machines

        machines.add_machine(api, machines.machine_params())
        assert not machines._create_lock.locked()

    def test_lock_released_on_error(self):
        api = MagicMock()
        api.add_machines.side_effect = RuntimeError("user not valid")

        with pytest.raises(UserNotFoundError):
            machines.add_machine(api, machines.machine_params())
        assert not machines._create_lock.locked()

    def test_concurrent_calls_are_serialized(self):
        active = []
        overlaps = []
        guard = threading.Lock()

        def add_machines(params):
            with guard:
                active.append(1)
                if len(active) > 1:
                    overlaps.append(True)
            threading.Event().wait(0.01)
            with guard:
                active.pop()
            return [AddMachineResult(machine="1")]

        api = MagicMock()
        api.add_machines.side_effect = add_machines
        threads = [
            threading.Thread(target=machines.add_machine, args=(api, machines.machine_params()))
            for _ in range(4)
        ]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert api.add_machines.call_count == 4
        assert overlaps == []

    def test_result_error(self):
        api = MagicMock()
        api.add_machines.return_value = [AddMachineResult(error='machine "x" not valid')]

        with pytest.raises(NotValidError):
            machines.add_machine(api, machines.machine_params())

    def test_unexpected_result_count(self):
        api = MagicMock()
        api.add_machines.return_value = []

        with pytest.raises(RemoteError):
            machines.add_machine(api, machines.machine_params())


class TestMachineParams:
    """Test parameter validation."""

    def test_disks(self):
        params = machines.machine_params(disks="ebs,1,10G")
        assert params.disks == [StorageDirective(pool="ebs", size=10240, count=1)]
        assert params.jobs == ("host-units",)

    def test_invalid_base(self):
        with pytest.raises(NotValidError):
            machines.machine_params(base="jammy")
