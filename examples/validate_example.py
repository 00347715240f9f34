import logging

import torch
from pairdist_cuda import DistanceInputs, DistanceType, run_cases

logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

device = "cuda" if torch.cuda.is_available() else "cpu"

inputs = [
    DistanceInputs(tolerance=1e-3, m=1024, n=1024, k=32, seed=1234),
    DistanceInputs(tolerance=1e-3, m=1024, n=32, k=1024, seed=1234),
    DistanceInputs(tolerance=1e-3, m=32, n=1024, k=1024, seed=1234),
    DistanceInputs(tolerance=1e-2, m=4, n=8, k=32, seed=1234),
]

failed = 0
for metric in DistanceType:
    for result in run_cases(metric, inputs, device=device):
        if not result.passed:
            failed += 1

print(f"device: {device} | failed cases: {failed}")
