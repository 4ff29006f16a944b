"""Dataset collaborator consumed by data-source units."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

import numpy as np

from dagnet.utils.errors.exceptions import DatasetError, SampleLoadError

if TYPE_CHECKING:
    from numpy.typing import ArrayLike, NDArray


# Channels of the per-sample helper buffer
HELPER_CHANNELS = 2


@runtime_checkable
class Dataset(Protocol):
    """
    Source of training and testing samples.

    Description:
        A dataset copies one sample at a time into a batch slot of the four
        buffers produced by a data-source unit: data, label, helper and weight.
        Each buffer has layout `(batch, *sample_shape)`; the helper buffer has
        :data:`HELPER_CHANNELS` channels and the weight buffer one.

    Attributes:
        name (str): Dataset name used in logs.
        training_samples (int): Number of training samples.
        testing_samples (int): Number of testing samples.
        input_shape (tuple[int, ...]): Shape of one data sample.
        label_shape (tuple[int, ...]): Shape of one label sample.

    """

    name: str

    @property
    def training_samples(self) -> int: ...

    @property
    def testing_samples(self) -> int: ...

    @property
    def input_shape(self) -> tuple[int, ...]: ...

    @property
    def label_shape(self) -> tuple[int, ...]: ...

    def get_training_sample(
        self,
        data: NDArray,
        label: NDArray,
        helper: NDArray,
        weight: NDArray,
        slot: int,
        index: int,
    ) -> bool:
        """
        Copy training sample `index` into batch slot `slot`.

        Returns:
            bool: False if the sample could not be loaded.

        """
        ...

    def get_testing_sample(
        self,
        data: NDArray,
        label: NDArray,
        helper: NDArray,
        weight: NDArray,
        slot: int,
        index: int,
    ) -> bool:
        """
        Copy testing sample `index` into batch slot `slot`.

        Returns:
            bool: False if the sample could not be loaded.

        """
        ...


@runtime_checkable
class MetadataSource(Protocol):
    """
    Optional capability of a :class:`Dataset` providing per-sample metadata.

    Description:
        Metadata is one arbitrary object per sample (a file name, an id, ...).
        Data-source units store it in the `metadata` slots of their label
        output, next to the label it belongs to.
    """

    @property
    def has_metadata(self) -> bool: ...

    def get_training_metadata(self, metadata: list[Any], slot: int, index: int) -> bool: ...

    def get_testing_metadata(self, metadata: list[Any], slot: int, index: int) -> bool: ...


class ArrayDataset:
    """
    In-memory :class:`Dataset` backed by numpy arrays.

    Description:
        Samples are indexed along the first axis. Weights default to one for
        every sample. Metadata, when given, is one arbitrary object per sample
        and can be fetched with :meth:`get_training_metadata` /
        :meth:`get_testing_metadata`.
    """

    def __init__(
        self,
        train_data: ArrayLike,
        train_labels: ArrayLike,
        test_data: ArrayLike | None = None,
        test_labels: ArrayLike | None = None,
        *,
        train_weights: ArrayLike | None = None,
        test_weights: ArrayLike | None = None,
        train_metadata: list[Any] | None = None,
        test_metadata: list[Any] | None = None,
        name: str = "array-dataset",
    ):
        """
        Initialize an ArrayDataset.

        Args:
            train_data (ArrayLike): Training inputs, shape `(n_train, *input_shape)`.
            train_labels (ArrayLike): Training labels, shape `(n_train, *label_shape)`.
            test_data (ArrayLike, optional): Testing inputs. No testing samples if None.
            test_labels (ArrayLike, optional): Testing labels. Required with `test_data`.
            train_weights (ArrayLike, optional): Per-sample training weights.
            test_weights (ArrayLike, optional): Per-sample testing weights.
            train_metadata (list[Any], optional): Per-sample training metadata.
            test_metadata (list[Any], optional): Per-sample testing metadata.
            name (str, optional): Dataset name.

        Raises:
            DatasetError: If sample counts or sample shapes are inconsistent.

        """
        self.name = name

        self._train_data = np.asarray(train_data, dtype=np.float32)
        self._train_labels = np.asarray(train_labels, dtype=np.float32)
        if test_data is None:
            if test_labels is not None:
                msg = "`test_labels` given without `test_data`."
                raise DatasetError(msg)
            test_data = np.zeros((0, *self._train_data.shape[1:]), dtype=np.float32)
            test_labels = np.zeros((0, *self._train_labels.shape[1:]), dtype=np.float32)
        elif test_labels is None:
            msg = "`test_data` given without `test_labels`."
            raise DatasetError(msg)
        self._test_data = np.asarray(test_data, dtype=np.float32)
        self._test_labels = np.asarray(test_labels, dtype=np.float32)

        self._train_weights = self._init_weights(train_weights, len(self._train_data), "train")
        self._test_weights = self._init_weights(test_weights, len(self._test_data), "test")
        self._train_metadata = train_metadata
        self._test_metadata = test_metadata

        self._validate()

    @staticmethod
    def _init_weights(weights: ArrayLike | None, n: int, split: str) -> NDArray:
        if weights is None:
            return np.ones(n, dtype=np.float32)
        weights = np.asarray(weights, dtype=np.float32).reshape(-1)
        if len(weights) != n:
            msg = f"Expected {n} {split} weights, got {len(weights)}."
            raise DatasetError(msg)
        return weights

    def _validate(self):
        if len(self._train_data) != len(self._train_labels):
            msg = (
                f"Training data has {len(self._train_data)} samples but "
                f"labels have {len(self._train_labels)}."
            )
            raise DatasetError(msg)
        if len(self._test_data) != len(self._test_labels):
            msg = (
                f"Testing data has {len(self._test_data)} samples but "
                f"labels have {len(self._test_labels)}."
            )
            raise DatasetError(msg)
        if self._test_data.shape[1:] != self._train_data.shape[1:]:
            msg = (
                f"Testing sample shape {self._test_data.shape[1:]} differs from "
                f"training sample shape {self._train_data.shape[1:]}."
            )
            raise DatasetError(msg)
        if self._test_labels.shape[1:] != self._train_labels.shape[1:]:
            msg = (
                f"Testing label shape {self._test_labels.shape[1:]} differs from "
                f"training label shape {self._train_labels.shape[1:]}."
            )
            raise DatasetError(msg)
        for split, meta, n in (
            ("training", self._train_metadata, len(self._train_data)),
            ("testing", self._test_metadata, len(self._test_data)),
        ):
            if meta is not None and len(meta) != n:
                msg = f"Expected {n} {split} metadata entries, got {len(meta)}."
                raise DatasetError(msg)

    # ================================================
    # Properties & Dunders
    # ================================================
    @property
    def training_samples(self) -> int:
        return len(self._train_data)

    @property
    def testing_samples(self) -> int:
        return len(self._test_data)

    @property
    def input_shape(self) -> tuple[int, ...]:
        return tuple(self._train_data.shape[1:])

    @property
    def label_shape(self) -> tuple[int, ...]:
        return tuple(self._train_labels.shape[1:])

    @property
    def has_metadata(self) -> bool:
        """Whether metadata is available for every training and testing sample."""
        if self._train_metadata is None:
            return False
        return self._test_metadata is not None or self.testing_samples == 0

    def __repr__(self):
        return (
            f"ArrayDataset(name='{self.name}', training_samples={self.training_samples}, "
            f"testing_samples={self.testing_samples})"
        )

    # ================================================
    # Sample access
    # ================================================
    @staticmethod
    def _copy_sample(
        src_data: NDArray,
        src_labels: NDArray,
        src_weights: NDArray,
        data: NDArray,
        label: NDArray,
        helper: NDArray,
        weight: NDArray,
        slot: int,
        index: int,
    ) -> bool:
        if not 0 <= index < len(src_data) or not 0 <= slot < len(data):
            return False
        data[slot] = src_data[index]
        label[slot] = src_labels[index]
        helper[slot] = 0.0
        weight[slot] = src_weights[index]
        return True

    def get_training_sample(self, data, label, helper, weight, slot, index) -> bool:
        return self._copy_sample(
            self._train_data,
            self._train_labels,
            self._train_weights,
            data,
            label,
            helper,
            weight,
            slot,
            index,
        )

    def get_testing_sample(self, data, label, helper, weight, slot, index) -> bool:
        return self._copy_sample(
            self._test_data,
            self._test_labels,
            self._test_weights,
            data,
            label,
            helper,
            weight,
            slot,
            index,
        )

    def get_training_metadata(self, metadata: list[Any], slot: int, index: int) -> bool:
        """Store the metadata of training sample `index` in `metadata[slot]`."""
        return self._copy_metadata(self._train_metadata, metadata, slot, index)

    def get_testing_metadata(self, metadata: list[Any], slot: int, index: int) -> bool:
        """Store the metadata of testing sample `index` in `metadata[slot]`."""
        return self._copy_metadata(self._test_metadata, metadata, slot, index)

    @staticmethod
    def _copy_metadata(source: list[Any] | None, metadata: list[Any], slot: int, index: int) -> bool:
        if source is None:
            msg = "This ArrayDataset was created without metadata."
            raise SampleLoadError(msg)
        if not 0 <= index < len(source) or not 0 <= slot < len(metadata):
            return False
        metadata[slot] = source[index]
        return True
