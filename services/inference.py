"""Inference engine boundary for the Whisper TFLite model.

The model is treated as opaque: one float32 feature tensor in, one int32
token tensor out. ``InferenceEngine`` is the seam the lifecycle controller
talks to, so tests can swap in a fake without LiteRT installed.
"""

__all__ = [
    "InferenceEngine",
    "LiteRTInterpreter",
]

import logging
from typing import Protocol

import numpy as np
from numpy.typing import NDArray

logger = logging.getLogger(__name__)


class InferenceEngine(Protocol):
    """Protocol for a fixed-topology TFLite-style interpreter."""

    def allocate_tensors(self) -> None:
        """Allocate input/output tensor buffers. Raises on failure."""
        ...

    def set_num_threads(self, num_threads: int) -> None:
        """Set intra-op parallelism used by ``invoke``."""
        ...

    def input_shape(self, index: int = 0) -> tuple[int, ...]:
        ...

    def set_input(self, index: int, values: NDArray) -> None:
        """Copy ``values`` into input tensor ``index`` (reshaped to fit)."""
        ...

    def invoke(self) -> None:
        """Run the model. Raises on failure."""
        ...

    def output(self, index: int = 0) -> NDArray:
        """Return a copy of output tensor ``index``."""
        ...


class LiteRTInterpreter:
    """InferenceEngine backed by the LiteRT (TFLite) Python interpreter.

    LiteRT only accepts the thread count at construction, so changing it
    rebuilds the interpreter from the same model buffer. Inputs already set
    are copied into the rebuilt interpreter.
    """

    def __init__(self, model_content: bytes, num_threads: int | None = None):
        self._model_content = model_content
        self._num_threads = num_threads
        self._interpreter = self._build(num_threads)
        self._allocated = False
        self._inputs: dict[int, NDArray] = {}

    @classmethod
    def from_buffer(cls, model_content: bytes) -> "LiteRTInterpreter":
        return cls(model_content)

    def _build(self, num_threads: int | None):
        from ai_edge_litert.interpreter import Interpreter

        return Interpreter(model_content=self._model_content, num_threads=num_threads)

    def allocate_tensors(self) -> None:
        self._interpreter.allocate_tensors()
        self._allocated = True

    def set_num_threads(self, num_threads: int) -> None:
        if num_threads == self._num_threads:
            return
        logger.debug(f"Rebuilding LiteRT interpreter with {num_threads} threads")
        self._num_threads = num_threads
        self._interpreter = self._build(num_threads)
        if self._allocated:
            self._interpreter.allocate_tensors()
            for index, tensor in self._inputs.items():
                self._set_tensor(index, tensor)

    def input_shape(self, index: int = 0) -> tuple[int, ...]:
        return tuple(int(d) for d in self._interpreter.get_input_details()[index]["shape"])

    def set_input(self, index: int, values: NDArray) -> None:
        self._inputs[index] = self._set_tensor(index, values)

    def _set_tensor(self, index: int, values: NDArray) -> NDArray:
        detail = self._interpreter.get_input_details()[index]
        tensor = np.ascontiguousarray(values, dtype=detail["dtype"]).reshape(detail["shape"])
        self._interpreter.set_tensor(detail["index"], tensor)
        return tensor

    def invoke(self) -> None:
        self._interpreter.invoke()

    def output(self, index: int = 0) -> NDArray:
        detail = self._interpreter.get_output_details()[index]
        return np.array(self._interpreter.get_tensor(detail["index"]))
