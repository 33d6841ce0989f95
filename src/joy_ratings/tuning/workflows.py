"""
Workflows (a preprocessor bound to a model) and workflow sets.

Workflows are immutable. Per-workflow domain corrections are attached with
``WorkflowSet.option_add`` and applied to a copy of the merged domains when
tuning starts; the domains of the shared preprocessor and model specs are never modified.
"""
import logging
from dataclasses import dataclass, replace
from typing import Any, Callable, Dict, Iterable, Iterator, List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd

from joy_ratings.tuning.model_specs import FittedModel, ModelSpec, default_models
from joy_ratings.tuning.params import Domain, EmptyDomainError, IntRange, validate_domain
from joy_ratings.tuning.preprocessors import FittedPreprocessor, PreprocessorSpec, default_preprocessors

logger = logging.getLogger(__name__)

DomainCorrection = Callable[[Dict[str, Domain], "Workflow", pd.DataFrame], Dict[str, Domain]]


class FittedWorkflow:

    def __init__(self, workflow_id: str, preprocessor: FittedPreprocessor, model: FittedModel):
        self.workflow_id = workflow_id
        self.preprocessor = preprocessor
        self.model = model

    def predict(self, X: pd.DataFrame) -> np.ndarray:
        return self.model.predict(self.preprocessor.transform(X))


@dataclass(frozen=True)
class Workflow:
    preprocessor: PreprocessorSpec
    model: ModelSpec
    domain_correction: Optional[DomainCorrection] = None

    @property
    def id(self) -> str:
        return f"{self.preprocessor.name}_{self.model.name}"

    def domains(self) -> Dict[str, Domain]:
        pre = self.preprocessor.tunable_domains()
        mod = self.model.tunable_domains()
        clash = set(pre) & set(mod)
        if clash:
            raise ValueError(f"Workflow '{self.id}' has clashing parameter names: {sorted(clash)}")
        return {**pre, **mod}

    def finalized_domains(self, X: pd.DataFrame) -> Dict[str, Domain]:
        """
        Merged domains after the workflow's correction, validated.

        Raises:
            EmptyDomainError: if any domain is empty or still has an unknown bound.
        """
        domains = self.domains()
        if self.domain_correction is not None:
            domains = self.domain_correction(dict(domains), self, X)
        for name, domain in domains.items():
            if not domain.is_finalized:
                raise EmptyDomainError(f"Workflow '{self.id}': domain for '{name}' was never finalized")
            validate_domain(name, domain)
        return domains

    def fit(self, X: pd.DataFrame, y: pd.Series, assignment: Optional[Dict[str, Any]] = None) -> FittedWorkflow:
        assignment = assignment or {}
        fitted_pre = self.preprocessor.fit(X, assignment)
        fitted_model = self.model.fit(fitted_pre.transform(X), y, assignment)
        return FittedWorkflow(self.id, fitted_pre, fitted_model)


def finalize_mtry(domains: Dict[str, Domain], workflow: Workflow, X: pd.DataFrame) -> Dict[str, Domain]:
    """Clamp ``mtry`` to the number of columns the workflow's preprocessor can produce."""
    if "mtry" not in domains:
        return domains
    n_features = workflow.preprocessor.max_output_features(X)
    low = domains["mtry"].low
    if n_features < low:
        raise EmptyDomainError(
            f"Workflow '{workflow.id}': preprocessor yields {n_features} columns, mtry needs at least {low}"
        )
    logger.debug(f"Workflow '{workflow.id}': mtry range set to [{low}, {n_features}]")
    return {**domains, "mtry": IntRange(low, n_features)}


class WorkflowSet:

    def __init__(self, workflows: Iterable[Workflow]):
        self.workflows: Tuple[Workflow, ...] = tuple(workflows)
        ids = [w.id for w in self.workflows]
        if len(set(ids)) != len(ids):
            raise ValueError(f"Duplicate workflow ids: {ids}")

    def __iter__(self) -> Iterator[Workflow]:
        return iter(self.workflows)

    def __len__(self) -> int:
        return len(self.workflows)

    def __getitem__(self, workflow_id: str) -> Workflow:
        for w in self.workflows:
            if w.id == workflow_id:
                return w
        raise KeyError(workflow_id)

    @property
    def ids(self) -> List[str]:
        return [w.id for w in self.workflows]

    def option_add(self, ids: Sequence[str], domain_correction: DomainCorrection) -> "WorkflowSet":
        """New set where the listed workflows carry ``domain_correction``."""
        unknown = set(ids) - set(self.ids)
        if unknown:
            raise KeyError(f"Unknown workflow ids: {sorted(unknown)}")
        return WorkflowSet(
            replace(w, domain_correction=domain_correction) if w.id in ids else w
            for w in self.workflows
        )


def workflow_set(
    preprocessors: Sequence[PreprocessorSpec],
    models: Sequence[ModelSpec],
    cross: bool = True,
) -> WorkflowSet:
    if cross:
        return WorkflowSet(Workflow(p, m) for p in preprocessors for m in models)
    if len(preprocessors) != len(models):
        raise ValueError("Without cross, preprocessors and models must have the same length")
    return WorkflowSet(Workflow(p, m) for p, m in zip(preprocessors, models))


def default_workflow_set(trees: int = 500, random_state: int = 42) -> WorkflowSet:
    """Every default preprocessor crossed with every default model, mtry finalized per workflow."""
    wset = workflow_set(default_preprocessors(), default_models(trees=trees, random_state=random_state))
    forest_ids = [w.id for w in wset if w.model.name == "rf"]
    return wset.option_add(forest_ids, finalize_mtry)
