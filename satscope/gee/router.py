"""
Workflow Router
Static registry from data product to workflow strategy.
"""

import logging
from typing import Dict, Iterable, List, Optional, Union

from ..errors import UnsupportedWorkflowError
from ..plan import DataProduct
from .workflows import Workflow, default_workflows

logger = logging.getLogger(__name__)


class WorkflowRouter:
    """Resolve a plan's data product to the workflow that serves it."""

    def __init__(self, workflows: Optional[Iterable[Workflow]] = None):
        self._registry: Dict[DataProduct, Workflow] = {}
        for workflow in (default_workflows() if workflows is None else workflows):
            self.register(workflow)

    def register(self, workflow: Workflow) -> None:
        if workflow.data_product in self._registry:
            logger.warning(f"Replacing workflow for {workflow.data_product.value}")
        self._registry[workflow.data_product] = workflow

    @property
    def supported(self) -> List[str]:
        return sorted(product.value for product in self._registry)

    def resolve(self, data_product: Union[DataProduct, str]) -> Workflow:
        """
        Raises:
            UnsupportedWorkflowError: If no workflow is registered for the product
        """
        try:
            product = DataProduct(data_product)
        except ValueError:
            product = None

        workflow = self._registry.get(product) if product is not None else None
        if workflow is None:
            value = data_product.value if isinstance(data_product, DataProduct) else data_product
            raise UnsupportedWorkflowError(
                f'No workflow for data product "{value}". '
                f"Supported: {', '.join(self.supported)}",
                supported=self.supported,
            )
        return workflow
