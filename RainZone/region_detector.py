"""
Region detection - clusters a broad sample set into distinct rain regions.

Greedy clustering: samples are visited strongest first, and each unvisited
sample seeds a cluster grown breadth-first through every unvisited sample
within `distance_threshold` degrees (planar Euclidean) of any member.
Two peaks joined by a chain of close samples end up in one region; the
result depends on visit order and is deterministic for a given input.
"""
import logging
from collections import deque
from typing import List, Sequence

import numpy as np

from zone_data import Coordinate, PrecipitationSample, Region
from zone_errors import InvalidInputError


def cluster_samples(samples: Sequence[PrecipitationSample], distance_threshold: float) -> List[List[PrecipitationSample]]:
    """
    Partition samples into proximity clusters.

    Returns:
        Clusters in seed order (strongest seed first); every sample appears
        in exactly one cluster.
    """
    if distance_threshold < 0:
        raise InvalidInputError(f"Distance threshold must be >= 0, got {distance_threshold}")
    if not samples:
        return []

    # stable sort keeps input order among equal intensities
    ordered = sorted(samples, key=lambda s: s.intensity, reverse=True)
    lats = np.array([s.latitude for s in ordered], dtype=float)
    lngs = np.array([s.longitude for s in ordered], dtype=float)
    visited = np.zeros(len(ordered), dtype=bool)

    clusters = []
    for seed in range(len(ordered)):
        if visited[seed]:
            continue
        visited[seed] = True
        members = [seed]
        queue = deque([seed])
        while queue:
            current = queue.popleft()
            distances = np.hypot(lats - lats[current], lngs - lngs[current])
            neighbors = np.flatnonzero(~visited & (distances <= distance_threshold))
            visited[neighbors] = True
            members.extend(int(i) for i in neighbors)
            queue.extend(int(i) for i in neighbors)
        clusters.append([ordered[i] for i in members])
    return clusters


def find_top_regions(
    samples: Sequence[PrecipitationSample],
    count: int = 3,
    min_cluster_size: int = 10,
    distance_threshold: float = 5.0
) -> List[Region]:
    """
    Find the most significant rain regions in a sample set.

    Args:
        samples: Precipitation samples, typically from a wide-area sampling run
        count: Maximum number of regions to return
        min_cluster_size: Clusters with fewer members are discarded
        distance_threshold: Max distance in degrees linking two samples

    Returns:
        Regions ranked by total intensity, best first, named "Region 1".."Region N"
    """
    if count < 0:
        raise InvalidInputError(f"Region count must be >= 0, got {count}")

    clusters = cluster_samples(samples, distance_threshold)
    significant = [c for c in clusters if len(c) >= min_cluster_size]
    logging.info(
        f"Clustered {len(samples)} samples into {len(clusters)} clusters, "
        f"{len(significant)} with >= {min_cluster_size} points"
    )

    ranked = sorted(significant, key=_total_intensity, reverse=True)[:count]
    return [_build_region(cluster, rank) for rank, cluster in enumerate(ranked, start=1)]


def _total_intensity(cluster: List[PrecipitationSample]) -> float:
    return sum(s.intensity for s in cluster)


def _build_region(cluster: List[PrecipitationSample], rank: int) -> Region:
    center_lat = sum(s.latitude for s in cluster) / len(cluster)
    center_lng = sum(s.longitude for s in cluster) / len(cluster)
    return Region(
        name=f"Region {rank}",
        rank=rank,
        center=Coordinate(center_lat, center_lng),
        samples=list(cluster),
        total_intensity=_total_intensity(cluster),
        max_intensity=max(s.intensity for s in cluster),
    )
