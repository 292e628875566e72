import numpy as np
import pandas as pd

from .tiles import DIRECTIONS, DOWN, ID2DIRS, RIGHT


def catalog_frame(tileset):
    """
    Describe a tileset as a dataframe, one row per tile.
    Columns: tile_id, tile, count, weight (normalized), UP, DOWN, LEFT, RIGHT
    (allowed neighbour ids as tuple strings).
    """
    counts = np.array(tileset.weights, dtype=np.int64)
    catalog = pd.DataFrame({
        'tile_id': range(len(tileset)),
        'tile': [str(tile) for tile in tileset.tiles],
        'count': counts,
        'weight': counts / counts.sum(),
    })
    for d in DIRECTIONS:
        catalog[ID2DIRS[d]] = [str(tuple(nb[d])) for nb in tileset.neighbors]
    return catalog


def _check_grid(tileset, tile_ids):
    tile_ids = np.asarray(tile_ids)
    if tile_ids.ndim != 2:
        raise ValueError("tile_ids must be a 2D array of tile indices.")
    if tile_ids.size == 0:
        raise ValueError("tile_ids is empty.")
    if tile_ids.max() >= len(tileset) or tile_ids.min() < 0:
        raise ValueError("tile_ids contains invalid tile indices.")
    return tile_ids


def analyze_output_distribution(tileset, tile_ids, epsilon=1e-12):
    """
    Compare the tile distribution of a solved grid against the tile weights via KL-divergence.
    Args:
        tileset: tileset the grid was generated from
        tile_ids: 2D array of tile indices, e.g. Wave.tile_ids()
        epsilon: numerical floor to avoid log(0)
    Returns:
        dict with sample/output counts and distributions plus KL value (sample || output)
    """
    tile_ids = _check_grid(tileset, tile_ids)
    K = len(tileset)

    out_counts = np.bincount(tile_ids.reshape(-1), minlength=K).astype(np.float64)
    out_dist = out_counts / out_counts.sum()
    sample_counts = np.array(tileset.weights, dtype=np.float64)
    sample_dist = sample_counts / sample_counts.sum()

    safe_out = np.clip(out_dist, epsilon, 1.0)
    safe_sample = np.clip(sample_dist, epsilon, 1.0)
    kl = float(np.sum(safe_sample * np.log(safe_sample / safe_out)))
    return {
        "kl_divergence": kl,
        "sample_counts": sample_counts,
        "sample_distribution": sample_dist,
        "output_counts": out_counts,
        "output_distribution": out_dist,
        "missing_in_output": np.where((sample_counts > 0) & (out_counts == 0))[0],
    }


def count_violations(tileset, tile_ids):
    """
    Count adjacent cell pairs whose tiles do not allow each other.
    A solved grid from a feasible tileset has none; contradiction fallbacks may leave some.
    """
    tile_ids = _check_grid(tileset, tile_ids)
    H, W = tile_ids.shape
    violations = 0
    for r in range(H):
        for c in range(W):
            token = tile_ids[r, c]
            allows = tileset.neighbors[token]
            if c + 1 < W and not allows[RIGHT][tile_ids[r, c + 1]]:
                violations += 1
            if r + 1 < H and not allows[DOWN][tile_ids[r + 1, c]]:
                violations += 1
    return violations
