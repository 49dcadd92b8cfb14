import pytest

from ridepool.geo.distance import haversine_distance_km, haversine_distance_m, path_length_km

PAULISTA_AVE = (-23.5629, -46.6544)
IBIRAPUERA = (-23.5874, -46.6576)


@pytest.mark.unit
class TestHaversine:
    def test_same_point_is_zero(self):
        assert haversine_distance_m(*PAULISTA_AVE, *PAULISTA_AVE) == 0.0

    def test_known_distance(self):
        distance = haversine_distance_km(*PAULISTA_AVE, *IBIRAPUERA)
        assert 2.5 < distance < 3.0

    def test_km_and_m_agree(self):
        meters = haversine_distance_m(*PAULISTA_AVE, *IBIRAPUERA)
        assert haversine_distance_km(*PAULISTA_AVE, *IBIRAPUERA) == pytest.approx(meters / 1000)

    def test_one_degree_of_longitude_at_equator(self):
        assert haversine_distance_km(0.0, 0.0, 0.0, 1.0) == pytest.approx(111.19, rel=1e-3)


@pytest.mark.unit
class TestPathLength:
    def test_empty_and_single_point(self):
        assert path_length_km([]) == 0.0
        assert path_length_km([PAULISTA_AVE]) == 0.0

    def test_sums_legs(self):
        leg = haversine_distance_km(*PAULISTA_AVE, *IBIRAPUERA)
        assert path_length_km([PAULISTA_AVE, IBIRAPUERA, PAULISTA_AVE]) == pytest.approx(2 * leg)
