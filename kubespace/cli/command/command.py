import argparse
from abc import ABC, abstractmethod


class Command(ABC):
    name: str = ""

    @abstractmethod
    async def arun(self, args: argparse.Namespace):
        ...

    @staticmethod
    @abstractmethod
    async def add_parser_to(subparsers: argparse._SubParsersAction):
        ...
