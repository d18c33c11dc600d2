"""In-process edge metrics rendered in the Prometheus text format."""

from __future__ import annotations

from typing import Dict, Iterable, Optional


def _sample(name: str, value: float, labels: Optional[Dict[str, str]] = None) -> str:
    if not labels:
        return f"{name} {value}"
    rendered = ",".join(f'{key}="{val}"' for key, val in labels.items())
    return f"{name}{{{rendered}}} {value}"


class _Metric:
    kind = "untyped"

    def __init__(self, name: str, description: str) -> None:
        self.name = name
        self.description = description

    def samples(self) -> Iterable[str]:
        raise NotImplementedError

    def render(self) -> str:
        lines = [f"# HELP {self.name} {self.description}", f"# TYPE {self.name} {self.kind}"]
        lines.extend(self.samples())
        return "\n".join(lines) + "\n"


class Counter(_Metric):
    """Monotonic counter, optionally split by one label such as the origin name."""

    kind = "counter"

    def __init__(self, name: str, description: str, label: Optional[str] = None) -> None:
        super().__init__(name, description)
        self.label = label
        self._values: Dict[str, float] = {} if label else {"": 0.0}

    def inc(self, amount: float = 1.0, *, label: str = "") -> None:
        if bool(label) != bool(self.label):
            raise ValueError(f"{self.name} expects label {self.label!r}")
        self._values[label] = self._values.get(label, 0.0) + amount

    @property
    def value(self) -> float:
        return sum(self._values.values())

    def value_for(self, label: str) -> float:
        return self._values.get(label, 0.0)

    def samples(self) -> Iterable[str]:
        if not self.label:
            return [_sample(self.name, self._values[""])]
        return [_sample(self.name, count, {self.label: key}) for key, count in sorted(self._values.items())]


class Gauge(_Metric):
    kind = "gauge"

    def __init__(self, name: str, description: str) -> None:
        super().__init__(name, description)
        self.value = 0.0

    def set(self, value: float) -> None:
        self.value = value

    def samples(self) -> Iterable[str]:
        return [_sample(self.name, self.value)]


class Histogram(_Metric):
    """Cumulative latency buckets; ``+Inf`` always equals the observation count."""

    kind = "histogram"

    def __init__(self, name: str, description: str, buckets: Iterable[float]) -> None:
        super().__init__(name, description)
        self.buckets = sorted(buckets)
        self._counts = [0] * len(self.buckets)
        self.total = 0.0
        self.count = 0

    def observe(self, value: float) -> None:
        self.count += 1
        self.total += value
        for index, bound in enumerate(self.buckets):
            if value <= bound:
                self._counts[index] += 1

    def samples(self) -> Iterable[str]:
        for bound, count in zip(self.buckets, self._counts):
            yield _sample(f"{self.name}_bucket", count, {"le": str(bound)})
        yield _sample(f"{self.name}_bucket", self.count, {"le": "+Inf"})
        yield _sample(f"{self.name}_sum", self.total)
        yield _sample(f"{self.name}_count", self.count)


class MetricsRegistry:
    def __init__(self) -> None:
        self._metrics: Dict[str, _Metric] = {}

    def _add(self, metric):
        existing = self._metrics.get(metric.name)
        if existing is not None:
            if type(existing) is not type(metric):
                raise ValueError(f"metric {metric.name} already registered as a {existing.kind}")
            return existing
        self._metrics[metric.name] = metric
        return metric

    def counter(self, name: str, description: str, label: Optional[str] = None) -> Counter:
        return self._add(Counter(name, description, label))

    def gauge(self, name: str, description: str) -> Gauge:
        return self._add(Gauge(name, description))

    def histogram(self, name: str, description: str, buckets: Iterable[float]) -> Histogram:
        return self._add(Histogram(name, description, buckets))

    def get(self, name: str) -> Optional[_Metric]:
        return self._metrics.get(name)

    def render(self) -> str:
        return "\n".join(metric.render() for metric in self._metrics.values())


GLOBAL_REGISTRY = MetricsRegistry()
