import logging

from fleet.core.errors import AlreadyLinked, InvalidType, NotAvailable, NotFound, VehicleSold
from fleet.core.formatters import normalize_plate
from fleet.db import models
from fleet.store import EntityStore

logger = logging.getLogger("fleet.composition")


class CompositionLinker:
    """Links trailers to tractors by plate and totals the axles of the set."""

    def __init__(self, store: EntityStore) -> None:
        self.store = store

    def add_composition(self, tractor_id: str, trailer_id: str) -> models.Vehicle:
        tractor = self.store.get_vehicle(tractor_id)
        if tractor.status == "sold":
            raise VehicleSold("Veiculo vendido nao pode receber composicoes")
        if not tractor.is_tractor:
            raise InvalidType(f"Veiculo {tractor.plate} nao e um veiculo de tracao")
        trailer = self.store.get_vehicle(trailer_id)
        if not trailer.is_trailer:
            raise InvalidType(f"Veiculo {trailer.plate} nao e um reboque")
        if trailer.status != "active":
            raise NotAvailable(f"Reboque {trailer.plate} nao esta ativo")

        plates = list(tractor.composition_plates or [])
        if trailer.plate in plates:
            return tractor
        owner = self.store.find_tractor_for_plate(trailer.plate, exclude_id=tractor.id)
        if owner:
            raise AlreadyLinked(f"Reboque {trailer.plate} ja vinculado ao veiculo {owner.plate}")

        plates.append(trailer.plate)
        tractor = self.store.set_composition(tractor.id, plates)
        logger.info("composicao adicionada tractor=%s trailer=%s", tractor.plate, trailer.plate)
        return tractor

    def remove_composition(self, tractor_id: str, trailer_plate: str) -> models.Vehicle:
        tractor = self.store.get_vehicle(tractor_id)
        if tractor.status == "sold":
            raise VehicleSold("Veiculo vendido nao pode ter composicoes alteradas")
        plate = normalize_plate(trailer_plate)
        plates = list(tractor.composition_plates or [])
        if plate not in plates:
            raise NotFound(f"Placa {plate} nao faz parte da composicao")
        plates.remove(plate)
        tractor = self.store.set_composition(tractor.id, plates)
        logger.info("composicao removida tractor=%s trailer=%s", tractor.plate, plate)
        return tractor

    def total_axles(self, tractor_id: str) -> int:
        tractor = self.store.get_vehicle(tractor_id)
        total = tractor.axles or 0
        for plate in tractor.composition_plates or []:
            trailer = self.store.get_vehicle_by_plate(plate)
            if trailer is not None:
                total += trailer.axles or 0
        return total

    def composition_problems(self, tractor: models.Vehicle) -> list[str]:
        problems = []
        for plate in tractor.composition_plates or []:
            trailer = self.store.get_vehicle_by_plate(plate)
            if trailer is None:
                problems.append(f"Reboque {plate} nao encontrado")
                continue
            if not trailer.is_trailer:
                problems.append(f"Veiculo {plate} nao e um reboque")
            owner = self.store.find_tractor_for_plate(plate, exclude_id=tractor.id)
            if owner:
                problems.append(f"Reboque {plate} tambem vinculado ao veiculo {owner.plate}")
        return problems
