"""
Grace period waits.

The lifecycle never sleeps directly; it awaits a GraceTimer so the caller
decides how time passes (real asyncio sleep live, instant in tests).
"""
import asyncio
from abc import ABC, abstractmethod
from typing import List


class GraceTimer(ABC):
    @abstractmethod
    async def wait(self, seconds: float):
        pass


class AsyncioGraceTimer(GraceTimer):
    async def wait(self, seconds: float):
        await asyncio.sleep(seconds)


class InstantGraceTimer(GraceTimer):
    """Returns immediately, remembering what was requested."""

    def __init__(self):
        self.waits: List[float] = []

    async def wait(self, seconds: float):
        self.waits.append(seconds)
        await asyncio.sleep(0)
