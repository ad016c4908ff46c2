import unittest

from chauffeur_booking import Resource, ResourceRegistry


class TestResourceRegistry(unittest.TestCase):
    def test_lists_resources_by_id(self) -> None:
        registry = ResourceRegistry([Resource(3, 7), Resource(1, 4), Resource(2, 2, active=False)])

        self.assertEqual([resource.resource_id for resource in registry.list_resources()], [1, 2, 3])
        self.assertEqual([resource.resource_id for resource in registry.list_active_resources()], [1, 3])

    def test_duplicate_ids_are_rejected(self) -> None:
        registry = ResourceRegistry([Resource(1, 4)])

        with self.assertRaises(ValueError):
            registry.add_resource(Resource(1, 6))

    def test_capacity_and_activity_changes(self) -> None:
        registry = ResourceRegistry([Resource(1, 4)])

        self.assertEqual(registry.set_capacity(1, 6).capacity, 6)
        self.assertFalse(registry.retire_resource(1).active)
        self.assertEqual(registry.list_active_resources(), [])
        self.assertTrue(registry.reactivate_resource(1).active)
        self.assertEqual(registry.get(1), Resource(1, 6))

    def test_invalid_updates(self) -> None:
        registry = ResourceRegistry([Resource(1, 4)])

        with self.assertRaises(KeyError):
            registry.retire_resource(99)
        with self.assertRaises(ValueError):
            registry.set_capacity(1, 0)
        self.assertEqual(registry.get(1).capacity, 4)

    def test_resource_from_config_row(self) -> None:
        self.assertEqual(Resource.from_dict({"id": "4", "capacity": "3"}), Resource(4, 3))
        with self.assertRaises(ValueError):
            Resource.from_dict({"resource_id": 1, "capacity": 0})


if __name__ == "__main__":
    unittest.main()
