import asyncio
import unittest

from utils.once_cell import OnceCell


class TestOnceCell(unittest.IsolatedAsyncioTestCase):

    def setUp(self):
        self.cell = OnceCell()
        self.calls = 0

    async def _factory(self):
        self.calls += 1
        await asyncio.sleep(0.01)
        return object()

    async def test_empty_cell(self):
        self.assertFalse(self.cell.initialized)
        self.assertIsNone(self.cell.get())

    async def test_caches_value(self):
        first = await self.cell.get_or_init(self._factory)
        second = await self.cell.get_or_init(self._factory)

        self.assertIs(first, second)
        self.assertIs(self.cell.get(), first)
        self.assertTrue(self.cell.initialized)
        self.assertEqual(self.calls, 1)

    async def test_concurrent_callers_share_one_attempt(self):
        values = await asyncio.gather(*(self.cell.get_or_init(self._factory) for _ in range(20)))

        self.assertEqual(self.calls, 1)
        self.assertTrue(all(v is values[0] for v in values))

    async def test_failure_is_not_cached(self):
        async def failing():
            self.calls += 1
            raise RuntimeError("boom")

        with self.assertRaises(RuntimeError):
            await self.cell.get_or_init(failing)
        self.assertFalse(self.cell.initialized)

        value = await self.cell.get_or_init(self._factory)

        self.assertIsNotNone(value)
        self.assertEqual(self.calls, 2)

    async def test_cancelled_waiter_does_not_cancel_attempt(self):
        started = asyncio.Event()

        async def slow():
            started.set()
            await asyncio.sleep(0.05)
            return "value"

        impatient = asyncio.ensure_future(self.cell.get_or_init(slow))
        await started.wait()
        patient = asyncio.ensure_future(self.cell.get_or_init(slow))
        impatient.cancel()

        self.assertEqual(await patient, "value")
        self.assertTrue(self.cell.initialized)


if __name__ == '__main__':
    unittest.main()
