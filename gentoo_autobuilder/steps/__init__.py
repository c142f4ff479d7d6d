from .step_10_preflight import PreflightStep
from .step_20_partition_fs import PartitionFilesystemStep
from .step_25_deploy_stage3 import DeployStage3Step
from .step_28_prepare_chroot import PrepareChrootStep
from .step_30_create_backup import CreateBackupStep
from .step_35_configure_portage import ConfigurePortageStep
from .step_40_localization import LocalizationStep
from .step_45_install_firmware import InstallFirmwareStep
from .step_50_build_kernel import BuildKernelStep
from .step_60_install_bootloader import InstallBootloaderStep
from .step_70_install_desktop import InstallDesktopStep
from .step_72_install_utils import InstallUtilsStep
from .step_80_configure_services import ConfigureServicesStep
from .step_85_install_cron import InstallCronStep
from .step_88_create_user import CreateUserStep
from .step_90_finalize import FinalizeStep

__all__ = [
    "PreflightStep",
    "PartitionFilesystemStep",
    "DeployStage3Step",
    "PrepareChrootStep",
    "CreateBackupStep",
    "ConfigurePortageStep",
    "LocalizationStep",
    "InstallFirmwareStep",
    "BuildKernelStep",
    "InstallBootloaderStep",
    "InstallDesktopStep",
    "InstallUtilsStep",
    "ConfigureServicesStep",
    "InstallCronStep",
    "CreateUserStep",
    "FinalizeStep",
]
