import numpy as np
import matplotlib.pyplot as plt


def plot_distribution_bars(sample_dist, output_dist, title="Tile distribution"):
    """
    Plot side-by-side bars comparing sample vs generated tile distributions.
    """
    ids = np.arange(len(sample_dist))
    width = 0.4
    fig, ax = plt.subplots(figsize=(12, 4))
    ax.bar(ids - width / 2, sample_dist, width=width, label="sample")
    ax.bar(ids + width / 2, output_dist, width=width, label="output")
    ax.set_xlabel("tile id")
    ax.set_ylabel("probability")
    ax.set_title(title)
    ax.legend()
    ax.set_xticks(ids)
    ax.set_xticklabels(ids, rotation=90)
    plt.tight_layout()
    return fig, ax


def plot_sample_and_result(sample, result):
    """Show the seed pattern and the generated image side by side."""
    cmap = 'gray' if sample.ndim == 2 else None
    fig, axes = plt.subplots(1, 2, figsize=(8, 4))
    axes[0].set_title("Sample Input: {}".format(sample.shape))
    axes[0].imshow(sample, cmap=cmap, vmin=0, vmax=255, interpolation='nearest')
    axes[1].set_title("Output: {}".format(result.shape))
    axes[1].imshow(result, cmap=cmap, vmin=0, vmax=255, interpolation='nearest')
    for ax in axes:
        ax.axis('off')
    plt.tight_layout()
    return fig, axes
