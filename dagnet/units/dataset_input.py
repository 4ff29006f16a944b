"""Data-source unit that feeds dataset samples into a graph."""

from __future__ import annotations

from typing import TYPE_CHECKING, ClassVar

import numpy as np

from dagnet.core.data.dataset import HELPER_CHANNELS, Dataset, MetadataSource
from dagnet.core.graph.buffer import Buffer
from dagnet.units.base_unit import TrainingUnit
from dagnet.utils.errors.exceptions import SampleLoadError, UnitInputError
from dagnet.utils.logging.logger import get_logger
from dagnet.utils.logging.warnings import warn

if TYPE_CHECKING:
    from collections.abc import Sequence

logger = get_logger("units")


class DatasetInputUnit(TrainingUnit):
    """
    Zero-input unit exposing batches of dataset samples as four output buffers.

    Description:
        Output buffers, by index:
            0. data   `(batch, *input_shape)`
            1. label  `(batch, *label_shape)`
            2. helper `(batch, 2)`
            3. weight `(batch, 1)`

        In training mode samples are drawn from a permutation of the training
        indices; the permutation is reshuffled with the unit's own seeded
        generator whenever it is exhausted. In testing mode samples are read
        sequentially from the start of the testing set, and slots past its end
        get zero weight.

        The label output carries one `metadata` slot per batch entry. Slots
        are filled when the active dataset is a :class:`MetadataSource` with
        metadata, and hold None otherwise (and for padding slots).

        None of the outputs carry gradients.
    """

    unit_type: ClassVar[str] = "dataset_input"
    uses_seed: ClassVar[bool] = True

    DATA_BUFFER: ClassVar[int] = 0
    LABEL_BUFFER: ClassVar[int] = 1
    HELPER_BUFFER: ClassVar[int] = 2
    WEIGHT_BUFFER: ClassVar[int] = 3

    def __init__(self, dataset: Dataset, batch_size: int = 1, seed: int = 0):
        """
        Initialize a DatasetInputUnit.

        Args:
            dataset (Dataset): Initially active dataset.
            batch_size (int, optional): Samples per batch. Defaults to 1.
            seed (int, optional): Seed of the permutation generator. Defaults to 0.

        """
        if batch_size < 1:
            msg = f"`batch_size` must be positive. Received: {batch_size}."
            raise ValueError(msg)
        super().__init__(batch_size=batch_size, seed=seed)
        self.batch_size = int(batch_size)
        self.seed = int(seed)
        self.rng = np.random.default_rng(self.seed)

        if self.seed == 0:
            warn(
                "DatasetInputUnit random seed is zero.",
                category=UserWarning,
                hints="Pass an explicit seed to get distinct sample orders across units.",
                stacklevel=2,
            )

        self.testing = False
        self._perm: np.ndarray = np.zeros(0, dtype=np.int64)
        self._current_element = 0
        self._current_element_testing = 0
        self.set_active_dataset(dataset)

    # ================================================
    # Dataset handling
    # ================================================
    @property
    def dataset(self) -> Dataset:
        return self._dataset

    def set_active_dataset(self, dataset: Dataset):
        """
        Switch to `dataset` and restart both training and testing order.

        Args:
            dataset (Dataset): New active dataset. Its sample shapes must match
                the output buffers if the unit is already connected.

        Raises:
            TypeError: If `dataset` does not implement the Dataset protocol.
            UnitInputError: If the sample shapes differ from the bound outputs.

        """
        if not isinstance(dataset, Dataset):
            msg = f"Expected a Dataset, got {type(dataset)}."
            raise TypeError(msg)
        if self.outputs:
            expected = self.infer_output_shapes([], dataset=dataset)
            actual = [tuple(o.shape) for o in self.outputs]
            if expected != actual:
                msg = f"Dataset '{dataset.name}' produces buffers {expected}, but outputs are {actual}."
                raise UnitInputError(msg)

        self._dataset = dataset
        if self.outputs:
            self.outputs[self.LABEL_BUFFER].metadata[:] = [None] * self.batch_size
        logger.debug(
            f"Switching to dataset '{dataset.name}' "
            f"({dataset.training_samples} training, {dataset.testing_samples} testing samples).",
        )
        self._perm = np.arange(dataset.training_samples, dtype=np.int64)
        self._redo_permutation()
        self._current_element = 0
        self._current_element_testing = 0

    def _redo_permutation(self):
        self.rng.shuffle(self._perm)

    @property
    def provides_metadata(self) -> bool:
        """Whether the active dataset fills the label metadata slots."""
        return isinstance(self._dataset, MetadataSource) and self._dataset.has_metadata

    @property
    def samples_in_training_set(self) -> int:
        return self._dataset.training_samples

    @property
    def samples_in_testing_set(self) -> int:
        return self._dataset.testing_samples

    # ================================================
    # Shape negotiation
    # ================================================
    def infer_output_shapes(
        self,
        input_shapes: Sequence[tuple[int, ...]],
        dataset: Dataset | None = None,
    ) -> list[tuple[int, ...]]:
        ds = dataset or self._dataset
        return [
            (self.batch_size, *ds.input_shape),
            (self.batch_size, *ds.label_shape),
            (self.batch_size, HELPER_CHANNELS),
            (self.batch_size, 1),
        ]

    def describe_buffers(self) -> list[str]:
        return ["Data Output", "Label", "Helper", "Weight"]

    def create_outputs(self, inputs: list[Buffer]) -> list[Buffer]:
        self._check_input_count(len(inputs))
        shapes = self.infer_output_shapes([])
        return [
            Buffer(shape, description=desc, requires_grad=False)
            for shape, desc in zip(shapes, self.describe_buffers())
        ]

    def _on_connect(self):
        # Consumer views share this list, so it is filled in place and never replaced
        label = self.outputs[self.LABEL_BUFFER]
        if label.metadata is None:
            label.metadata = [None] * self.batch_size

    # ================================================
    # Sample loading
    # ================================================
    def set_testing_mode(self, testing: bool):
        if testing and not self.testing:
            # Always test the same elements
            self._current_element_testing = 0
            logger.debug("Enabled testing mode.")
        elif not testing and self.testing:
            logger.debug("Enabled training mode.")
        self.testing = testing

    def select_and_load_samples(self):
        """
        Fill the output buffers with the next batch.

        Raises:
            SampleLoadError: If the dataset fails to provide a sample or its
                metadata, or the training set is empty in training mode.

        """
        data, label, helper, weight = (o.data for o in self.outputs)
        metadata = self.outputs[self.LABEL_BUFFER].metadata
        with_metadata = self.provides_metadata
        for slot in range(self.batch_size):
            force_no_weight = False
            if self.testing:
                if self._current_element_testing >= self._dataset.testing_samples:
                    force_no_weight = True
                    selected = 0
                else:
                    selected = self._current_element_testing
                    self._current_element_testing += 1
                fetch = self._dataset.get_testing_sample
            else:
                if len(self._perm) == 0:
                    msg = f"Dataset '{self._dataset.name}' has no training samples."
                    raise SampleLoadError(msg)
                selected = int(self._perm[self._current_element])
                self._current_element += 1
                if self._current_element >= len(self._perm):
                    self._current_element = 0
                    self._redo_permutation()
                fetch = self._dataset.get_training_sample

            if force_no_weight:
                # Padding slot: keep whatever data is present, it carries no weight
                if self._dataset.testing_samples == 0:
                    data[slot] = 0.0
                    label[slot] = 0.0
                    helper[slot] = 0.0
                elif not fetch(data, label, helper, weight, slot, selected):
                    msg = f"Cannot load sample {selected} from dataset '{self._dataset.name}'."
                    raise SampleLoadError(msg)
                weight[slot] = 0.0
                metadata[slot] = None
                continue
            if not fetch(data, label, helper, weight, slot, selected):
                msg = f"Cannot load sample {selected} from dataset '{self._dataset.name}'."
                raise SampleLoadError(msg)

            if not with_metadata:
                metadata[slot] = None
                continue
            fetch_metadata = (
                self._dataset.get_testing_metadata
                if self.testing
                else self._dataset.get_training_metadata
            )
            if not fetch_metadata(metadata, slot, selected):
                msg = f"Cannot load metadata of sample {selected} from dataset '{self._dataset.name}'."
                raise SampleLoadError(msg)

    # ================================================
    # Traversal hooks
    # ================================================
    def feed_forward(self) -> None:
        # Samples are loaded explicitly via select_and_load_samples()
        return

    def back_propagate(self) -> None:
        # No inputs
        return
