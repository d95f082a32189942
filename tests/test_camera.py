"""Tests for the viewer's camera, event handling and command line."""

import pygame
import pytest

import camera
import grid


@pytest.fixture
def plot():
    return grid.grid()


@pytest.fixture
def cam(plot, screen):
    return camera.Camera((0, 0), 20, 0.5, 2000, plot, screen)


def press(button, pos):
    return pygame.event.Event(pygame.MOUSEBUTTONDOWN, button=button, pos=pos)


@pytest.mark.parametrize("span,step", [(20, 2), (21, 5), (70, 10), (1000, 100), (3, 0.5)])
def test_nice_step(span, step):
    assert camera.niceStep(span) == pytest.approx(step)


class TestSettingsForView:
    def test_one_to_one_view(self):
        assert camera.settingsForView(20, 40) == {
            "unitSize": 40,
            "gridDivision": (80, 2),
            "lineWeightAxis": 3,
            "lineWeightMajor": 2,
            "lineWeightMinor": 1,
            "labelXInterval": 80,
            "labelYInterval": 80,
            "labelScale": 15,
            "maxSamplesPerAxis": 200,
            }

    def test_zoomed_out_view_thickens_lines_before_downscaling(self):
        settings = camera.settingsForView(2000, 0.4)
        assert settings["unitSize"] == 1
        assert settings["gridDivision"] == (200, 2)
        assert settings["lineWeightAxis"] > 3
        assert settings["labelScale"] > 15


class TestCamera:
    def test_span_is_clamped(self, plot, screen):
        assert camera.Camera((0, 0), 5000, 0.5, 2000, plot, screen).span == 2000
        assert camera.Camera((0, 0), 0.1, 0.5, 2000, plot, screen).span == 0.5

    def test_world_rect_and_viewport(self, cam):
        assert cam.pixelsPerUnit() == 40
        assert cam.getWorldRect() == (-10, -10, 20, 20)
        assert cam.getViewport() == pygame.Rect(-320, -320, 640, 640)
        assert cam.getScale() == pytest.approx(0.8)

    def test_viewport_follows_unit_size(self, cam, plot):
        cam.center = (1, 2)
        plot.settings.unitSize = 40
        assert cam.getViewport() == pygame.Rect(-360, -480, 800, 800)

    def test_screen_to_world(self, cam):
        assert cam.screenToWorld((400, 400)) == (0, 0)
        assert cam.screenToWorld((0, 0)) == (-10, 10)
        assert cam.screenToWorld((800, 800)) == (10, -10)

    def test_zoom_keeps_point_under_cursor(self, cam):
        cam.zoomAt(0.5, (800, 400))
        assert cam.span == 10
        assert cam.center == pytest.approx((5, 0))
        before = cam.screenToWorld((200, 100))
        cam.zoomAt(1.25, (200, 100))
        assert cam.screenToWorld((200, 100)) == pytest.approx(before)

    def test_render(self, cam, plot):
        plot.addFuncFromString("x^2 - y^2")
        assert cam.render().get_size() == (640, 640)


class TestUI:
    def test_pan_with_left_button(self, cam):
        ui = camera.UI(cam)
        ui.dispatchEvents([
            press(1, (100, 100)),
            pygame.event.Event(pygame.MOUSEMOTION, pos=(140, 120)),
        ])
        assert cam.panning
        assert cam.getPanDifference() == (-1.0, 0.5)
        assert cam.getCenter() == (-1.0, 0.5)
        assert cam.center == (0, 0)
        ui.dispatchEvents([pygame.event.Event(pygame.MOUSEBUTTONUP, button=1, pos=(140, 120))])
        assert not cam.panning
        assert cam.center == (-1.0, 0.5)

    def test_wheel_zooms_about_cursor(self, cam):
        ui = camera.UI(cam)
        ui.dispatchEvents([press(4, (400, 400))])
        assert cam.span == pytest.approx(16)
        assert cam.center == pytest.approx((0, 0))
        ui.dispatchEvents([press(5, (400, 400))] * 2)
        assert cam.span == pytest.approx(25)

    def test_wheel_zoom_is_clamped(self, cam):
        ui = camera.UI(cam)
        ui.dispatchEvents([press(4, (400, 400))] * 100)
        assert cam.span == 0.5

    def test_quit_stops_the_loop(self, cam):
        ui = camera.UI(cam)
        assert ui.dispatchEvents([]) is True
        assert ui.dispatchEvents([pygame.event.Event(pygame.QUIT)]) is False

    def test_grid_settings_follow_zoom(self, cam, plot):
        ui = camera.UI(cam)
        ui.setGridByZoom()
        assert plot.settings.unitSize == 40
        assert plot.settings.gridDivision == (80, 2)
        assert cam.render().get_size() == (800, 800)
        cam.zoomAt(0.5, (400, 400))
        ui.setGridByZoom()
        assert plot.settings.unitSize == 80
        assert plot.settings.labelXInterval == 80
        assert plot.settings.maxSamplesPerAxis == 200


def test_submit_expression(plot, caplog):
    assert camera.submitExpression(plot, "x + y")
    previous = list(plot.functions)
    assert not camera.submitExpression(plot, "x + q")
    assert plot.functions == previous
    assert "Undefined variable: q" in caplog.text


def test_parse_args():
    args = camera.parseArgs(["sin(x)", "y", "--strict", "--size", "640", "480"])
    assert args.expression == ["sin(x)", "y"]
    assert args.strict
    assert tuple(args.size) == (640, 480)
    assert not camera.parseArgs([]).verbose
