from sklearn.datasets import make_blobs, make_moons


def toy_dataset(n=300, dtype="float32"):
    r"""Generate a toy dataset for testing purposes."""
    X, y = make_moons(n_samples=n, noise=0.05, random_state=0)
    return X.astype(dtype), y


def blobs_dataset(n=100, n_features=5, dtype="float32"):
    r"""Well separated Gaussian blobs for testing purposes."""
    X, y = make_blobs(
        n_samples=n, n_features=n_features, centers=3, cluster_std=0.5, random_state=0
    )
    return X.astype(dtype), y
