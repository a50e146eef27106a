"""
Pipeline Module

Coordinates a full host pool rollout: detect image, deploy, configure, restart.
"""

import logging
import threading
from datetime import datetime
from typing import Any, Callable, Dict, Optional

from .deployer import DeploymentExecutor
from .desktop_config import DesktopConfigurator
from .errors import PipelineCancelledError
from .image_watcher import ImageWatcher, utc_now
from .models import RolloutResult, RolloutStatus
from .parameter_builder import ParameterBuilder
from .restart import RollingRestartOrchestrator


logger = logging.getLogger(__name__)


class RolloutPipeline:
    """
    Sequential rollout of a freshly published image to a new host pool.

    Stages run strictly one after the other. Cancellation is honoured
    between stages and during waits, never inside the deployment call.
    """

    def __init__(self, config: Dict[str, Any], session: Any = None,
                 clock: Callable[[], datetime] = utc_now,
                 cancel_event: Optional[threading.Event] = None,
                 waiter: Optional[Callable[[float], Any]] = None):
        """
        Initialize the RolloutPipeline.

        Args:
            config: Effective rollout configuration
            session: AzureSession (or anything exposing the same clients);
                only needed when not running dry
            clock: Returns the current aware UTC time
            cancel_event: Set from another thread to stop the run
            waiter: Replaces the interruptible wait (seconds -> None)
        """
        self.config = config
        self.session = session
        self.clock = clock
        self.cancel_event = cancel_event or threading.Event()
        self.waiter = waiter or self._interruptible_wait

        azure = config.get('azure', {})
        self.resource_group = azure.get('resource_group')
        self.vm_resource_group = azure.get('vm_resource_group') or self.resource_group

        repository = config.get('repository', {})
        self.watcher = ImageWatcher(
            repository.get('root', ''),
            repository.get('images_dir', 'LatestImages'),
            clock=clock,
        )
        self.builder = ParameterBuilder(config, clock=clock)

    def cancel(self):
        """Request cancellation of the run."""
        self.cancel_event.set()

    def _check_cancelled(self, stage: str):
        if self.cancel_event.is_set():
            raise PipelineCancelledError(stage)

    def _interruptible_wait(self, seconds: float):
        if self.cancel_event.wait(seconds):
            raise PipelineCancelledError('wait')

    def _wait(self, seconds: float, stage: str):
        self._check_cancelled(stage)
        if seconds > 0:
            self.waiter(seconds)
        self._check_cancelled(stage)

    def restart_orchestrator(self) -> RollingRestartOrchestrator:
        """Restart orchestrator bound to this run's session and timing."""
        timing = self.config.get('timing', {})
        restart = self.config.get('restart', {})
        polling = restart.get('readiness_polling', {})
        return RollingRestartOrchestrator(
            self.session.desktop_client,
            self.session.compute_client,
            self.resource_group,
            vm_resource_group=self.vm_resource_group,
            warmup_seconds=timing.get('warmup_delay_seconds', 300),
            max_parallel=restart.get('max_parallel', 1),
            waiter=lambda seconds: self._wait(seconds, 'warm-up'),
            readiness_interval=polling.get('interval_seconds') if polling.get('enabled') else None,
        )

    def run(self, dry_run: bool = False, output_path: Optional[str] = None,
            output_format: str = 'json') -> RolloutResult:
        """
        Run the pipeline from the top.

        Args:
            dry_run: Stop after rendering the parameter document
            output_path: Also write the rendered parameters here
            output_format: 'json' or 'yaml' for output_path

        Returns:
            RolloutResult describing what happened

        Raises:
            MalformedImageNameError: Before any remote call
            DeploymentFailedError: If the deployment fails
            ConfigurationUpdateFailedError: If the desktop rename keeps failing
            PipelineCancelledError: If cancelled between stages
        """
        self._check_cancelled('detect')
        image = self.watcher.check_for_new_image()
        if image is None:
            return RolloutResult(status=RolloutStatus.NO_CHANGE)

        self._check_cancelled('materialize')
        spec = self.builder.build_spec(image)
        template, parameter_document = self.builder.load_documents()
        rendered = self.builder.render_parameters(parameter_document, spec)
        logger.info(
            "Host pool %s, VM prefix %s, token valid until %s",
            spec.host_pool_name, spec.vm_name_prefix, spec.token_expiration_iso,
        )
        if output_path:
            self.builder.save_parameters(rendered, output_path, output_format)

        if dry_run:
            return RolloutResult(status=RolloutStatus.DRY_RUN, image=image, spec=spec)

        self._check_cancelled('deploy')
        executor = DeploymentExecutor(self.session.resource_client, self.resource_group)
        deployment = executor.deploy(
            template,
            self.builder.deployment_parameters(rendered),
            spec.deployment_name,
        )

        self._check_cancelled('configure')
        desktop = self.config.get('desktop', {})
        configurator = DesktopConfigurator(
            self.session.desktop_client,
            self.resource_group,
            desktop_name=desktop.get('name', 'SessionDesktop'),
            retry_attempts=desktop.get('retry_attempts', 3),
            retry_delay=desktop.get('retry_delay_seconds', 10),
            sleeper=lambda seconds: self._wait(seconds, 'configure'),
        )
        configurator.rename_default_desktop(spec.application_group_name, spec.desktop_friendly_name)

        delay = self.config.get('timing', {}).get('propagation_delay_seconds', 3600)
        logger.info("Waiting %s seconds for host pool objects to propagate", delay)
        self._wait(delay, 'restart')

        waves = self.restart_orchestrator().run(spec.host_pool_name)

        status = RolloutStatus.COMPLETED
        if any(not wave.succeeded for wave in waves):
            status = RolloutStatus.COMPLETED_WITH_FAILURES

        return RolloutResult(
            status=status,
            image=image,
            spec=spec,
            deployment=deployment,
            waves=waves,
        )
