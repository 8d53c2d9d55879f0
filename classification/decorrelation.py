"""Linear decorrelation of input features.

Features are centred and multiplied by the symmetric inverse square root
of their covariance matrix, so the transformed features have unit
covariance while staying as close as possible to the originals (unlike a
PCA rotation, each output remains dominated by its own input).
"""

import numpy as np
from numpy.typing import NDArray
from sklearn.base import BaseEstimator, TransformerMixin
from sklearn.utils.validation import check_array, check_is_fitted


class DecorrelationTransform(TransformerMixin, BaseEstimator):
    """Square-root decorrelation transform.

    Parameters
    ----------
    eps : float
        Eigenvalues below ``eps * max_eigenvalue`` are clipped to that floor
        so constant or collinear features do not blow up (default: 1e-10)

    Attributes
    ----------
    mean_ : NDArray
        Per-feature mean of the training data
    matrix_ : NDArray
        Inverse square root of the training covariance, shape (n, n)
    """

    def __init__(self, eps: float = 1e-10):
        self.eps = eps

    def fit(self, X, y=None):
        X = check_array(X, dtype=np.float64)
        self.mean_ = X.mean(axis=0)
        cov = np.atleast_2d(np.cov(X - self.mean_, rowvar=False))

        eigvals, eigvecs = np.linalg.eigh(cov)
        floor = max(float(eigvals.max()), 0.0) * self.eps
        eigvals = np.clip(eigvals, max(floor, np.finfo(np.float64).tiny), None)

        self.matrix_ = (eigvecs / np.sqrt(eigvals)) @ eigvecs.T
        self.n_features_in_ = X.shape[1]
        return self

    def transform(self, X) -> NDArray:
        check_is_fitted(self, "matrix_")
        X = check_array(X, dtype=np.float64)
        if X.shape[1] != self.n_features_in_:
            raise ValueError(
                f"Expected {self.n_features_in_} features, got {X.shape[1]}"
            )
        return (X - self.mean_) @ self.matrix_


def correlation_matrix(X: NDArray) -> NDArray:
    """Pearson correlation matrix of the columns of ``X`` (NaN-free input)."""
    X = np.asarray(X, dtype=np.float64)
    with np.errstate(divide="ignore", invalid="ignore"):
        corr = np.corrcoef(X, rowvar=False)
    return np.nan_to_num(np.atleast_2d(corr), nan=0.0)
