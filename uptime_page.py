'''
Display slot and the surfaces it can be shown on.

A DisplaySlot is the single text value the user sees. It writes through to a
surface: an HTML document (the element with the slot's id gets the value as
its literal inner text) or a console stream.
'''

import sys
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional, TextIO, Union

from bs4 import BeautifulSoup

from uptime_settings import PLACEHOLDER, UPTIME_ELEMENT_ID

# Constants
DEFAULT_PAGE = """<!DOCTYPE html>
<html>
<head><title>Uptime</title></head>
<body>
<p>Server uptime: <span id="uptime"></span></p>
</body>
</html>
"""


class DisplayError(Exception):
    '''Raised when a surface cannot show a value.'''


class Display(ABC):
    '''A surface that can show text in named elements.'''

    @abstractmethod
    def write(self, element_id: str, text: str) -> None:
        ...


class HtmlDisplay(Display):
    '''Keeps an HTML document and optionally mirrors it to a file.'''

    def __init__(self, document: str = DEFAULT_PAGE, path: Optional[Union[str, Path]] = None):
        self.soup = BeautifulSoup(document, "html.parser")
        self.path = Path(path) if path is not None else None

    def write(self, element_id: str, text: str) -> None:
        element = self.soup.find(id=element_id)
        if element is None:
            raise DisplayError(f"No element with id '{element_id}' in the document")
        # Assigning .string stores the payload as text; markup is escaped on render.
        element.string = text
        if self.path is not None:
            self.path.write_text(self.render(), encoding="utf-8")

    def text_of(self, element_id: str) -> str:
        element = self.soup.find(id=element_id)
        if element is None:
            raise DisplayError(f"No element with id '{element_id}' in the document")
        return element.get_text()

    def render(self) -> str:
        return str(self.soup)


class ConsoleDisplay(Display):
    '''Prints "<id>: <value>" lines.'''

    def __init__(self, stream: Optional[TextIO] = None):
        self.stream = stream

    def write(self, element_id: str, text: str) -> None:
        stream = self.stream if self.stream is not None else sys.stdout
        stream.write(f"{element_id}: {text}\n")
        stream.flush()


class DisplaySlot:
    '''The single mutable value shown to the user.

    Holds the most recently received value, or the placeholder if nothing has
    arrived yet. Every ``set`` overwrites; no history is kept.
    '''

    def __init__(
        self,
        element_id: str = UPTIME_ELEMENT_ID,
        placeholder: str = PLACEHOLDER,
        display: Optional[Display] = None,
    ):
        self.element_id = element_id
        self.placeholder = placeholder
        self.display = display
        self.value = placeholder
        self.set(placeholder)

    def set(self, text: str) -> None:
        self.value = text
        if self.display is not None:
            self.display.write(self.element_id, text)

    def __str__(self) -> str:
        return self.value
