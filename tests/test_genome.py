"""
Tests for neuro_arena/evolution/genome.py

Tests genome creation, variation, serialization and decoding.
"""

import pytest
import numpy as np

from neuro_arena.core.artifact import NeuralController
from neuro_arena.evolution.genome import (
    GenomeFactory,
    NetworkDecoder,
    NetworkGenome,
    crossover,
    genome_from_dict,
)


class TestNetworkGenome:
    """Tests for NetworkGenome."""

    def test_weight_count_direct(self):
        """Without a hidden layer: (inputs + bias) * outputs."""
        assert NetworkGenome.weight_count(5, 0, 2) == 12

    def test_weight_count_hidden(self):
        assert NetworkGenome.weight_count(5, 6, 2) == 6 * 6 + 7 * 2

    def test_new_genome_is_unevaluated(self):
        genome = NetworkGenome(genome_id=0, input_count=1, output_count=1)
        assert genome.fitness is None
        assert not genome.evaluated

    def test_serialization(self):
        """Genome serializes and deserializes correctly."""
        genome = GenomeFactory(3, 2, hidden_count=2, seed=0).create_genome()
        genome.fitness = 4.25
        genome.aux_fitness = (4.25,)

        restored = genome_from_dict(genome.to_dict())

        assert restored.genome_id == genome.genome_id
        assert restored.fitness == 4.25
        assert restored.aux_fitness == (4.25,)
        assert restored.hidden_count == 2
        np.testing.assert_array_equal(restored.weights, genome.weights)

    def test_unknown_type_rejected(self):
        with pytest.raises(ValueError):
            genome_from_dict({"type": "TreeGenome"})

    def test_mutation_produces_new_genome(self):
        """Mutation returns an unevaluated child with the given id."""
        rng = np.random.default_rng(42)
        parent = GenomeFactory(3, 2, seed=0).create_genome()
        parent.fitness = 1.0

        child = parent.mutate(rng, genome_id=99, generation=4, rate=1.0)

        assert child.genome_id == 99
        assert child.birth_generation == 4
        assert child.fitness is None
        assert not np.array_equal(child.weights, parent.weights)
        assert parent.fitness == 1.0


class TestCrossover:

    def test_child_takes_weights_from_parents(self):
        rng = np.random.default_rng(0)
        factory = GenomeFactory(2, 1, seed=0)
        a = factory.create_genome()
        b = factory.create_genome()

        child = crossover(a, b, rng, genome_id=10, generation=1)

        for i, w in enumerate(child.weights):
            assert w == a.weights[i] or w == b.weights[i]

    def test_topology_mismatch(self):
        rng = np.random.default_rng(0)
        a = GenomeFactory(2, 1, seed=0).create_genome()
        b = GenomeFactory(3, 1, seed=0).create_genome()

        with pytest.raises(ValueError):
            crossover(a, b, rng, genome_id=10, generation=1)


class TestGenomeFactory:

    def test_create_genome_list(self):
        factory = GenomeFactory(5, 2, hidden_count=3, seed=1)
        genomes = factory.create_genome_list(10)

        assert len(genomes) == 10
        assert len({g.genome_id for g in genomes}) == 10
        assert all(len(g.weights) == factory.weight_count for g in genomes)

    def test_seeded_factories_agree(self):
        a = GenomeFactory(2, 2, seed=7).create_genome()
        b = GenomeFactory(2, 2, seed=7).create_genome()
        np.testing.assert_array_equal(a.weights, b.weights)

    def test_observe_skips_loaded_ids(self):
        """New ids never collide with ids of loaded genomes."""
        factory = GenomeFactory(1, 1)
        loaded = [NetworkGenome(genome_id=i, input_count=1, output_count=1) for i in (3, 10)]

        factory.observe(loaded)

        assert factory.next_id() == 11


class TestNetworkDecoder:
    """Tests for decoding genomes into controllers."""

    def test_decodes_direct_network(self):
        genome = GenomeFactory(5, 2, seed=0).create_genome()
        controller = NetworkDecoder().decode(genome)

        assert isinstance(controller, NeuralController)
        assert controller.input_count == 5
        assert controller.output_count == 2
        assert controller.hidden_count == 0

    def test_decodes_hidden_network(self):
        genome = GenomeFactory(5, 2, hidden_count=4, seed=0).create_genome()
        controller = NetworkDecoder().decode(genome)

        assert controller.hidden_count == 4

    def test_outputs_in_unit_range(self):
        genome = GenomeFactory(3, 2, hidden_count=2, seed=0).create_genome()
        controller = NetworkDecoder().decode(genome)

        controller.input_signals[:] = [1.0, -1.0, 0.5]
        controller.activate()

        assert np.all(controller.output_signals > 0.0)
        assert np.all(controller.output_signals < 1.0)

    def test_wrong_weight_count_is_non_viable(self):
        genome = NetworkGenome(genome_id=0, input_count=3, output_count=1, weights=np.zeros(2))
        assert NetworkDecoder().decode(genome) is None

    def test_non_finite_weights_are_non_viable(self):
        genome = GenomeFactory(2, 1, seed=0).create_genome()
        genome.weights[0] = np.nan
        assert NetworkDecoder().decode(genome) is None
