"""
WorkerRoster interface for live clusters.
"""

from abc import ABC, abstractmethod

from attrition_engine.domain import RebootRequest, WorkerDescriptor


class WorkerRoster(ABC):
    """
    Live cluster access: list workers and ask them to reboot.
    """

    @abstractmethod
    async def list_workers(self) -> list[WorkerDescriptor]:
        """
        Fetch the current worker roster from the cluster controller.

        Raises:
            ClusterClientError: If the roster cannot be fetched
        """
        pass

    @abstractmethod
    def send_reboot(self, worker: WorkerDescriptor, request: RebootRequest) -> None:
        """
        Ask a worker to reboot.

        Best-effort: returns immediately, no delivery guarantee, no
        acknowledgement and no retry. A target that is already dead must
        not block the caller. Delivery failures are never raised.
        """
        pass
