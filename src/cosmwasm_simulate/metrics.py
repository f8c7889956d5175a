from __future__ import annotations

from prometheus_client import Counter

CONTRACT_CALLS = Counter(
    "simulate_calls_total",
    "Contract calls dispatched through the registry",
    ["entry_point", "outcome"],
)

CONTRACT_RELOADS = Counter(
    "simulate_reloads_total",
    "Artifact installs and hot reloads performed by the watcher",
    ["outcome"],
)
