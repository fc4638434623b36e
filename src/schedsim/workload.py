"""Random workload generation for interactive sessions."""

import random
from dataclasses import dataclass

from schedsim.engine import Scheduler
from schedsim.models import ProcessClass

CLASS_LABELS = {
    ProcessClass.SYSTEM: "SYS",
    ProcessClass.USER: "USR",
    ProcessClass.BACKGROUND: "BG",
}

# Inclusive priority ranges per class
PRIORITY_RANGES = {
    ProcessClass.SYSTEM: (70, 99),
    ProcessClass.USER: (30, 69),
    ProcessClass.BACKGROUND: (1, 30),
}


@dataclass(slots=True, frozen=True)
class ProcessRequest:
    """Parameters of a process waiting to be admitted."""

    name: str
    cpu_time: int
    mem_need: int
    cpu_demand: int
    process_class: ProcessClass
    priority: int

    def submit(self, scheduler: Scheduler) -> bool:
        """Ask the scheduler to admit this request."""
        return scheduler.admit(
            self.name,
            self.cpu_time,
            self.mem_need,
            self.cpu_demand,
            self.process_class,
            self.priority,
        )


def random_request(process_class: ProcessClass, rng: random.Random) -> ProcessRequest:
    """
    Build a random request typical for the given class.

    CPU time is 5-9 units, memory 100-599 MB and demand 10-89%. Priority
    depends on the class so that system work usually outranks user work,
    which usually outranks background work.
    """
    low, high = PRIORITY_RANGES[process_class]
    suffix = rng.randrange(10_000)
    return ProcessRequest(
        name=f"{CLASS_LABELS[process_class]}_{suffix:04d}",
        cpu_time=rng.randint(5, 9),
        mem_need=rng.randint(100, 599),
        cpu_demand=rng.randint(10, 89),
        process_class=process_class,
        priority=rng.randint(low, high),
    )


def random_batch(rng: random.Random) -> list[ProcessRequest]:
    """Build one auto-generation burst: 1-2 requests of random classes."""
    classes = list(ProcessClass)
    return [random_request(rng.choice(classes), rng) for _ in range(rng.randint(1, 2))]
