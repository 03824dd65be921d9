# mnistopt

Train a four-layer fully connected network (784 → 300 → 100 → 100 → 10,
ReLU hidden layers, softmax output, cross-entropy loss, no biases) on the
MNIST handwritten digits and compare optimisation methods:

- plain stochastic gradient descent
- SGD with momentum
- SGD with linear learning-rate decay
- SGD with momentum and linear learning-rate decay
- Adam
- RMSProp

Weights are initialised uniformly within the Glorot limit. The random
generator is seeded from the current time unless a seed is given, and the
seed is printed.

## Installing

```
pip install .
```

The only runtime dependency is numpy.

## Data

Point the program at a directory holding the four standard MNIST IDX files:

```
train-images-idx3-ubyte
train-labels-idx1-ubyte
t10k-images-idx3-ubyte
t10k-labels-idx1-ubyte
```

All 60000 training and 10000 testing images are loaded; a file too short
for that raises `ValueError`.

## Command line

```
mnistopt <path_to_dataset> <learning_rate> <batch_size> <total_epochs> [options]
```

| Option | Meaning | Default |
| --- | --- | --- |
| `-v <n>` | any non-zero `n`: check analytical gradients against central differences on one random training sample before training | off |
| `-m <method>` | 0=SGD, 1=SGD_MOMENTUM, 2=SGD_LR_DECAY, 3=SGD_MOMENTUM_LR_DECAY, 4=ADAM, 5=RMSPROP | 0 |
| `-momentum <value>` | momentum parameter | 0.9 |
| `-final_lr <value>` | final learning rate for decay | 0.001 |
| `-beta1 <value>` | Adam first-moment decay | 0.9 |
| `-beta2 <value>` | Adam second-moment decay | 0.999 |
| `-epsilon <value>` | Adam / RMSProp epsilon | 1e-8 |
| `-rho <value>` | RMSProp decay rate | 0.9 |
| `-run_experiments` | run the full grid of experiments instead of a single training run | off |

A learning rate of zero, a batch size or epoch count below one, a method
outside 0–5, or an unknown option prints an error and the usage text.

During training, every 30000 samples (and once at the end) the program
prints the epoch, iteration count, mean loss, test accuracy, current
learning rate and elapsed time, followed by a timing summary.

Examples:

```
mnistopt ./data 0.1 10 1
mnistopt ./data 0.1 10 5 -m 3 -momentum 0.9 -final_lr 0.001
mnistopt ./data 0.001 10 5 -m 4 -beta1 0.9 -beta2 0.999
mnistopt ./data 0.1 10 1 -v 1
mnistopt ./data 0.1 10 1 -run_experiments
```

### Experiments

With `-run_experiments` the learning rate, batch size and epoch count on
the command line are required but not used; instead a fixed series of
configurations is trained (SGD over learning rates and batch sizes,
momentum values, decay schedules, momentum with decay, and Adam and RMSProp
hyperparameter grids). Each configuration trains a fresh network on the
full training set and writes a `results_*.csv` file in the current
directory with the header `epoch,iteration,loss,accuracy,learning_rate`
and a single row holding the final test accuracy and learning rate. The
full series trains well over a hundred networks and takes a long time.

## Library use

```python
from mnistopt.mnist import load_dataset
from mnistopt.network import NeuralNetwork
from mnistopt.optimiser import Method, Optimiser

dataset = load_dataset("./data", False)
network = NeuralNetwork(seed=1)
optimiser = Optimiser(network, 0.1, 10, 1)
optimiser.set_method(Method.SGD_MOMENTUM, 0.9, 0.0)
stats = optimiser.run(dataset)          # list of TrainingStats
print(network.testing_accuracy(dataset.testing_images, dataset.testing_labels))
```

- `mnistopt.mnist`: `read_idx_header`, `load_images`, `load_labels`,
  `load_dataset` (returns an `MnistDataset`) and `format_example`, which
  renders one image as a 28×28 grid of pixel values.
- `mnistopt.network`: `NeuralNetwork` with `forward`, `xent_loss`,
  `backward`, `accumulate`, `zero_gradients`, `objective`, `predict` and
  `testing_accuracy`; `LayerWeights` holds each weight matrix with its
  gradient and optimiser state.
- `mnistopt.gradcheck`: `verify_gradients` compares backpropagated
  gradients with central differences on randomly chosen weights of every
  layer and returns a `GradientCheck` with average and maximum relative
  error.
- `mnistopt.optimiser`: `Optimiser` and the `Method` enum.
- `mnistopt.experiments`: the experiment series, `run_single_experiment`,
  and `run_experiment`, which trains one configuration and writes the mean
  loss and test accuracy every 1000 samples to a CSV file, returning the
  `ResultPoint` rows written.

## What it does not do

The package writes result files but does not plot them or otherwise
analyse them; the message printed after `-run_experiments` refers to a
plotting step that is not part of this package. Trained weights are not
saved.

## Tests

```
pip install .[test]
pytest
```