"""
Rolling Restart Module

Restarts every session host of a host pool in two waves separated by a warm-up wait.
"""

import logging
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Any, Callable, Dict, List, Optional

from .errors import AzureSDKNotInstalledError
from .models import HostStatus, SessionHostRecord, WaveResult
from .naming import ImageNameConvention


logger = logging.getLogger(__name__)

WAVES = 2


class RollingRestartOrchestrator:
    """
    Two-wave restart of all session hosts bound to a pool.

    Wave 1 enumerates and restarts every host regardless of status, the
    warm-up wait gives hosts time to re-register, then wave 2 enumerates
    again from scratch and restarts every host once more. Restart requests
    are fire-and-forget: the long running operation is started but never
    awaited.
    """

    def __init__(self, desktop_client: Any, compute_client: Any, resource_group: str,
                 vm_resource_group: Optional[str] = None, warmup_seconds: float = 300,
                 max_parallel: int = 1, waiter: Callable[[float], Any] = time.sleep,
                 readiness_interval: Optional[float] = None):
        """
        Initialize the RollingRestartOrchestrator.

        Args:
            desktop_client: azure.mgmt.desktopvirtualization client
            compute_client: azure.mgmt.compute client
            resource_group: Resource group of the host pool
            vm_resource_group: Resource group of the session host VMs
            warmup_seconds: Wait between the two waves
            max_parallel: Concurrent restart requests per wave (1 = sequential)
            waiter: Called with a number of seconds to wait
            readiness_interval: Poll host status at this interval during the
                warm-up and end it early once every host is Available; None
                keeps the fixed wait
        """
        self.desktop_client = desktop_client
        self.compute_client = compute_client
        self.resource_group = resource_group
        self.vm_resource_group = vm_resource_group or resource_group
        self.warmup_seconds = warmup_seconds
        self.max_parallel = max(1, max_parallel)
        self.waiter = waiter
        self.readiness_interval = readiness_interval

    def list_session_hosts(self, host_pool: str) -> List[SessionHostRecord]:
        """Read the session hosts of a pool from the control plane."""
        hosts = []
        for host in self.desktop_client.session_hosts.list(self.resource_group, host_pool):
            hosts.append(SessionHostRecord(
                name=host.name,
                vm_name=ImageNameConvention.session_host_vm_name(host.name),
                status=HostStatus.parse(getattr(host, 'status', None)),
            ))
        return hosts

    def restart_wave(self, host_pool: str, wave: int) -> WaveResult:
        """
        Enumerate the pool and issue one restart per host.

        A failing host is recorded and the wave carries on with the rest.
        """
        try:
            from azure.core.exceptions import AzureError
        except ImportError as exc:
            raise AzureSDKNotInstalledError('azure-core') from exc

        hosts = self.list_session_hosts(host_pool)
        result = WaveResult(wave=wave, hosts=[host.vm_name for host in hosts])
        logger.info("Restart wave %d: %d session host(s) in %s", wave, len(hosts), host_pool)

        def restart(vm_name: str):
            self.compute_client.virtual_machines.begin_restart(self.vm_resource_group, vm_name)

        # keyed by session host name; different hosts may share a bare VM name
        outcomes: Dict[str, Optional[Exception]] = {}
        if self.max_parallel > 1 and len(hosts) > 1:
            with ThreadPoolExecutor(max_workers=self.max_parallel) as executor:
                futures = {executor.submit(restart, host.vm_name): host.name for host in hosts}
                for future in as_completed(futures):
                    error = future.exception()
                    if error is not None and not isinstance(error, AzureError):
                        raise error
                    outcomes[futures[future]] = error
        else:
            for host in hosts:
                try:
                    restart(host.vm_name)
                    outcomes[host.name] = None
                except AzureError as e:
                    outcomes[host.name] = e

        for host in hosts:
            error = outcomes[host.name]
            if error is None:
                logger.debug("Restart requested for %s", host.vm_name)
                result.restarted.append(host.vm_name)
                continue

            logger.warning("Restart of %s failed: %s", host.vm_name, error)
            key = host.vm_name
            if key in result.failures:
                logger.warning("Session hosts share VM name %s; recording failure under %s", key, host.name)
                key = host.name
            result.failures[key] = str(error)

        return result

    def warm_up(self, host_pool: str):
        """Wait between the waves, optionally ending early once all hosts are Available."""
        if not self.readiness_interval:
            logger.info("Warming up for %s seconds", self.warmup_seconds)
            self.waiter(self.warmup_seconds)
            return

        remaining = self.warmup_seconds
        while remaining > 0:
            step = min(self.readiness_interval, remaining)
            self.waiter(step)
            remaining -= step
            hosts = self.list_session_hosts(host_pool)
            if all(host.status == HostStatus.AVAILABLE for host in hosts):
                logger.info("All %d session host(s) available", len(hosts))
                return
        logger.info("Warm-up elapsed before all session hosts became available")

    def run(self, host_pool: str) -> List[WaveResult]:
        """
        Run both restart waves.

        Args:
            host_pool: Host pool name

        Returns:
            One WaveResult per wave
        """
        results = []
        for wave in range(1, WAVES + 1):
            if wave > 1:
                self.warm_up(host_pool)
            results.append(self.restart_wave(host_pool, wave))
        return results
